"""Reference worker — a headless stand-in for the browser extension.

Learn: Speaks exactly the protocol the extension does:
1. POST /register with {extensionId, apiKey}
2. GET /poll/{apiKey} every few seconds
3. For each {requestId, message, newConversation} → run the handler
4. POST /response/{apiKey}/{requestId} with {response, error}

The relay never resurrects an evicted session on poll, so a 404 from
/poll (or 60s without any successful contact) triggers re-registration,
the same recovery the extension performs.

Usage:
    async with WorkerClient("http://localhost:3000", credential) as w:
        await w.run(echo_handler)
"""

from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
import structlog

from chatrelay.logs import mask_credential

logger = structlog.get_logger()

DEFAULT_POLL_INTERVAL = 6.0  # seconds
RECONNECT_AFTER = 60.0  # seconds without contact before re-registering

Handler = Callable[[str, bool], Awaitable[str]]


def generate_credential() -> str:
    """64 hex chars — the same shape the extension generates."""
    return secrets.token_hex(32)


async def echo_handler(message: str, new_conversation: bool) -> str:
    """Answer every query with its own text. Handy for smoke tests."""
    return f"echo: {message}"


@dataclass
class Assignment:
    """A query handed to this worker by /poll."""
    request_id: str
    message: str
    new_conversation: bool = False
    action: str = "query"


class WorkerNotRegistered(Exception):
    """The relay does not know this credential (404)."""


class WorkerClient:
    """Poll/post client for one worker credential."""

    def __init__(
        self,
        base_url: str,
        credential: str,
        *,
        identity: str = "chatrelay-worker",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.credential = credential
        self.identity = identity
        self.poll_interval = poll_interval
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=30.0)
        self._owns_client = client is None
        self._running = False
        self._last_contact = time.monotonic()
        self.processed = 0

    async def __aenter__(self) -> "WorkerClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ─── Protocol calls ───────────────────────────────────

    async def register(self) -> None:
        r = await self._client.post(
            "/register",
            json={"extensionId": self.identity, "apiKey": self.credential},
        )
        r.raise_for_status()
        self._last_contact = time.monotonic()
        logger.info(
            "worker.registered",
            identity=self.identity,
            credential=mask_credential(self.credential),
        )

    async def poll(self) -> Optional[Assignment]:
        """One poll. None when the relay has nothing queued."""
        r = await self._client.get(f"/poll/{self.credential}")
        if r.status_code == 404:
            raise WorkerNotRegistered(r.json().get("error", "Extension not found"))
        r.raise_for_status()
        self._last_contact = time.monotonic()

        data = r.json()
        if not data.get("requestId"):
            return None
        return Assignment(
            request_id=data["requestId"],
            message=data.get("message", ""),
            new_conversation=bool(data.get("newConversation", False)),
            action=data.get("action", "query"),
        )

    async def post_result(
        self,
        request_id: str,
        response: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        r = await self._client.post(
            f"/response/{self.credential}/{request_id}",
            json={"response": response, "error": error},
        )
        if r.status_code == 404:
            raise WorkerNotRegistered(r.json().get("error", "Extension not found"))
        r.raise_for_status()
        self._last_contact = time.monotonic()

    # ─── Loop ─────────────────────────────────────────────

    async def handle(self, assignment: Assignment, handler: Handler) -> None:
        """Run the handler for one assignment and post its outcome."""
        try:
            answer = await handler(assignment.message, assignment.new_conversation)
        except Exception as e:
            logger.warning("worker.handler_failed", request_id=assignment.request_id, error=str(e))
            await self.post_result(assignment.request_id, error=str(e) or type(e).__name__)
        else:
            await self.post_result(assignment.request_id, response=answer)
        self.processed += 1

    async def run_once(self, handler: Handler) -> bool:
        """Poll once and process the assignment if there is one.

        Returns True if an assignment was handled.
        """
        try:
            assignment = await self.poll()
        except WorkerNotRegistered:
            logger.info("worker.reregistering", reason="unknown credential")
            await self.register()
            return False

        if assignment is None:
            return False
        await self.handle(assignment, handler)
        return True

    async def run(self, handler: Handler, *, max_items: Optional[int] = None) -> None:
        """Register, then poll until stopped (or `max_items` handled)."""
        self._running = True
        await self.register()
        logger.info("worker.started", poll_interval=self.poll_interval)

        while self._running:
            try:
                handled = await self.run_once(handler)
            except WorkerNotRegistered:
                # Evicted between poll and post; that result is lost
                logger.info("worker.reregistering", reason="result rejected")
                await self.register()
                handled = False
            except httpx.HTTPError as e:
                logger.warning("worker.poll_error", error=str(e))
                handled = False
                if time.monotonic() - self._last_contact > RECONNECT_AFTER:
                    try:
                        await self.register()
                    except httpx.HTTPError as reg_err:
                        logger.warning("worker.register_failed", error=str(reg_err))

            if max_items is not None and self.processed >= max_items:
                break
            if not handled:
                await asyncio.sleep(self.poll_interval)

        self._running = False
        logger.info("worker.stopped", processed=self.processed)

    def stop(self) -> None:
        self._running = False
