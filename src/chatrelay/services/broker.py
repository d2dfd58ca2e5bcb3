"""Rendezvous broker — matches blocking queries with worker results.

Learn: A query crosses two unrelated HTTP exchanges. The caller's
POST /api/query enqueues a WorkItem and then waits; later the worker
picks the item up via GET /poll and, much later, answers via
POST /response. The broker is the meeting point:

  submit_query ──enqueue──▶ pending ──poll──▶ worker
       ▲                                        │
       └──── waiter future ◀── results ◀──post──┘

Each in-flight query parks on its own asyncio.Future, which
submit_result resolves directly — no 500ms store polling. All session
mutations happen between awaits on the single event loop, so they are
atomic without locks.

Per-item lifecycle: Queued → Dispatched (implicit, on poll) →
Completed | Failed | Abandoned (deadline). Once dequeued the broker has
no visibility until a result lands or the deadline fires.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass
from typing import Optional

import structlog

from chatrelay.logs import mask_credential
from chatrelay.services import dispatch
from chatrelay.services.errors import (
    InvalidRequestError,
    RequestTimedOutError,
    WorkerTimedOutError,
)
from chatrelay.services.registry import (
    DEFAULT_LIVENESS_THRESHOLD,
    Registry,
    Result,
    WorkItem,
    WorkerSession,
    is_live,
)

logger = structlog.get_logger()

DEFAULT_REQUEST_TIMEOUT = 180.0  # seconds
DEFAULT_PROGRESS_LOG_INTERVAL = 10.0
DEFAULT_RESULT_TTL = 180.0


def new_request_id(now: float) -> str:
    """Millisecond timestamp + random suffix. Unique, not ordered."""
    return f"{int(now * 1000)}{secrets.token_hex(6)}"


@dataclass
class WorkerStatus:
    """Liveness snapshot for /api/status."""

    active: bool
    identity: str
    last_seen: float
    pending_count: int


class RelayBroker:
    """Owns the registry and runs the query rendezvous.

    Learn: One instance per process, created by create_app() and
    stored on app.state — route handlers get it via a dependency
    rather than importing a module-level global.
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        *,
        liveness_threshold: float = DEFAULT_LIVENESS_THRESHOLD,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        progress_log_interval: float = DEFAULT_PROGRESS_LOG_INTERVAL,
        result_ttl: float = DEFAULT_RESULT_TTL,
        max_pending: int = 0,
    ):
        self.registry = registry if registry is not None else Registry()
        self.liveness_threshold = liveness_threshold
        self.request_timeout = request_timeout
        self.progress_log_interval = progress_log_interval
        self.result_ttl = result_ttl
        self.max_pending = max_pending
        self._started = time.monotonic()

    @classmethod
    def from_settings(cls, settings) -> "RelayBroker":
        return cls(
            liveness_threshold=settings.liveness_threshold_seconds,
            request_timeout=settings.request_timeout_seconds,
            progress_log_interval=settings.progress_log_interval_seconds,
            result_ttl=settings.result_ttl_seconds,
            max_pending=settings.max_pending_per_worker,
        )

    # ─── Worker side ──────────────────────────────────────

    def register(self, identity: str, credential: str) -> WorkerSession:
        return self.registry.register(identity, credential)

    def poll_for_work(self, credential: str) -> Optional[WorkItem]:
        """Hand the oldest pending item to the worker, or None.

        Polling refreshes liveness but never resurrects an evicted
        session — an unknown credential must register first.
        """
        session = self.registry.touch(credential)
        item = dispatch.dequeue_next(session)
        if item is not None:
            logger.info(
                "broker.work_dispatched",
                request_id=item.request_id,
                identity=session.identity,
                queued_seconds=round(self.registry.now() - item.enqueued_at, 2),
                still_pending=session.pending_count,
            )
        return item

    def submit_result(
        self,
        credential: str,
        request_id: str,
        response: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Result:
        """Store the worker's outcome and wake the waiting caller, if any.

        Learn: The worker is trusted — request_id is not checked against
        anything that was dispatched. A non-empty error makes the
        result a failure; otherwise it is a success (empty text if the
        worker sent nothing).
        """
        session = self.registry.touch(credential)
        now = self.registry.now()
        if error:
            result = Result(request_id=request_id, error=str(error), completed_at=now)
        else:
            result = Result(request_id=request_id, response=response or "", completed_at=now)
        session.results[request_id] = result
        # Answered before it was polled: it must not be dispatched later
        dispatch.discard(session, request_id)

        waiter = session.waiters.get(request_id)
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

        logger.info(
            "broker.result_received",
            request_id=request_id,
            identity=session.identity,
            succeeded=result.succeeded,
            waiting_caller=waiter is not None,
        )
        return result

    # ─── Caller side ──────────────────────────────────────

    async def submit_query(
        self,
        credential: str,
        message: str,
        new_conversation: bool = False,
    ) -> Result:
        """Queue a query for the worker and block until it answers.

        Raises WorkerNotFoundError, WorkerTimedOutError (stale session,
        now evicted), QueueFullError, or RequestTimedOutError. However
        the wait ends, the item is pulled from the queue if the worker
        never took it, and the waiter is unregistered.
        """
        if not credential or not message:
            raise InvalidRequestError("Missing apiKey or message")

        session = self.registry.lookup(credential)
        now = self.registry.now()
        if not is_live(session, now, self.liveness_threshold):
            self.registry.evict(credential)
            raise WorkerTimedOutError()

        item = WorkItem(
            request_id=new_request_id(now),
            message=message,
            new_conversation=new_conversation,
            enqueued_at=now,
        )
        dispatch.enqueue(session, item, self.max_pending)
        waiter = asyncio.get_running_loop().create_future()
        session.waiters[item.request_id] = waiter

        logger.info(
            "broker.query_enqueued",
            request_id=item.request_id,
            credential=mask_credential(credential),
            new_conversation=new_conversation,
            pending=session.pending_count,
        )

        try:
            await self._wait_for_result(item.request_id, waiter)
        finally:
            session.waiters.pop(item.request_id, None)
            result = session.results.pop(item.request_id, None)
            withdrawn = dispatch.discard(session, item.request_id)
            if result is None and withdrawn:
                logger.info("broker.query_withdrawn", request_id=item.request_id)

        if result is None:
            logger.warning(
                "broker.query_timed_out",
                request_id=item.request_id,
                timeout_seconds=self.request_timeout,
            )
            raise RequestTimedOutError()

        if result.succeeded:
            logger.info(
                "broker.query_completed",
                request_id=item.request_id,
                preview=(result.response or "")[:30],
            )
        else:
            logger.info("broker.query_failed", request_id=item.request_id, error=result.error)
        return result

    async def _wait_for_result(self, request_id: str, waiter: asyncio.Future) -> None:
        """Suspend until `waiter` resolves or the deadline passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.request_timeout

        while not waiter.done():
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            await asyncio.wait({waiter}, timeout=min(remaining, self.progress_log_interval))
            if not waiter.done() and deadline - loop.time() > 0:
                logger.info(
                    "broker.query_waiting",
                    request_id=request_id,
                    elapsed_seconds=round(self.request_timeout - (deadline - loop.time()), 1),
                )

    # ─── Status + housekeeping ────────────────────────────

    def status(self, credential: str) -> WorkerStatus:
        """Report liveness. A stale session is evicted on the way out."""
        session = self.registry.lookup(credential)
        active = is_live(session, self.registry.now(), self.liveness_threshold)
        if not active:
            self.registry.evict(credential)
        return WorkerStatus(
            active=active,
            identity=session.identity,
            last_seen=session.last_seen,
            pending_count=session.pending_count,
        )

    def sweep_orphans(self, now: Optional[float] = None) -> int:
        """Drop results nobody is waiting for once they outlive result_ttl.

        These come from workers that answered after the caller's
        deadline. Returns the number removed.
        """
        now = self.registry.now() if now is None else now
        removed = 0
        for session in self.registry:
            for request_id, result in list(session.results.items()):
                if request_id in session.waiters:
                    continue
                if now - result.completed_at >= self.result_ttl:
                    del session.results[request_id]
                    removed += 1
        if removed:
            logger.info("broker.orphans_swept", removed=removed)
        return removed

    @property
    def active_worker_count(self) -> int:
        return len(self.registry)

    def uptime(self) -> float:
        return time.monotonic() - self._started
