"""Worker registry — credential → WorkerSession.

Learn: The credential (the extension's API key) is both the bearer
secret and the lookup key. Sessions live in memory only; a restart
forgets every worker and they re-register on their next failed poll.

Re-registration is idempotent: it refreshes identity and last_seen but
never touches the pending queue, stored results, or waiting callers —
an extension that re-registers mid-query must not lose that query.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

import structlog

from chatrelay.logs import mask_credential
from chatrelay.services.errors import InvalidRequestError, WorkerNotFoundError

logger = structlog.get_logger()

DEFAULT_LIVENESS_THRESHOLD = 120.0  # seconds


@dataclass
class WorkItem:
    """One queued query awaiting pickup by the worker."""

    request_id: str
    message: str
    new_conversation: bool = False
    action: str = "query"
    enqueued_at: float = field(default_factory=time.time)


@dataclass
class Result:
    """Outcome of a WorkItem — exactly one of response/error is set."""

    request_id: str
    response: Optional[str] = None
    error: Optional[str] = None
    completed_at: float = field(default_factory=time.time)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class WorkerSession:
    """State for one registered worker."""

    credential: str
    identity: str
    last_seen: float
    registered_at: float
    pending: "OrderedDict[str, WorkItem]" = field(default_factory=OrderedDict)
    results: dict[str, Result] = field(default_factory=dict)
    waiters: dict[str, asyncio.Future] = field(default_factory=dict)

    @property
    def pending_count(self) -> int:
        return len(self.pending)


def is_live(session: WorkerSession, now: float, threshold: float) -> bool:
    """True if the worker was heard from within `threshold` seconds."""
    return now - session.last_seen < threshold


class Registry:
    """Owned store of worker sessions, keyed by credential."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._sessions: dict[str, WorkerSession] = {}
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def register(self, identity: str, credential: str) -> WorkerSession:
        """Create or refresh the session for `credential`."""
        if not identity or not credential:
            raise InvalidRequestError("Missing extensionId or apiKey")

        now = self.now()
        session = self._sessions.get(credential)
        if session is None:
            session = WorkerSession(
                credential=credential,
                identity=identity,
                last_seen=now,
                registered_at=now,
            )
            self._sessions[credential] = session
            logger.info(
                "registry.worker_registered",
                identity=identity,
                credential=mask_credential(credential),
            )
        else:
            session.identity = identity
            session.last_seen = now
            logger.info(
                "registry.worker_reregistered",
                identity=identity,
                credential=mask_credential(credential),
                pending=session.pending_count,
                results=len(session.results),
            )
        return session

    def lookup(self, credential: str) -> WorkerSession:
        session = self._sessions.get(credential)
        if session is None:
            raise WorkerNotFoundError()
        return session

    def touch(self, credential: str) -> WorkerSession:
        session = self.lookup(credential)
        session.last_seen = self.now()
        return session

    def evict(self, credential: str) -> Optional[WorkerSession]:
        """Drop a session. Returns it, or None if it was already gone."""
        session = self._sessions.pop(credential, None)
        if session is not None:
            logger.info(
                "registry.worker_evicted",
                identity=session.identity,
                credential=mask_credential(credential),
                idle_seconds=round(self.now() - session.last_seen, 1),
            )
        return session

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, credential: str) -> bool:
        return credential in self._sessions

    def __iter__(self) -> Iterator[WorkerSession]:
        # Snapshot: callers may evict while iterating
        return iter(list(self._sessions.values()))
