"""Per-worker dispatch queue.

Learn: The queue is an OrderedDict keyed by request_id — FIFO pops from
the front, and a caller that gives up can still pull its own item out
in O(1) if the worker never picked it up.

Delivery is at-most-once: dequeue_next removes the item before the
worker has done anything with it. If the extension crashes mid-chat
the item is gone and the caller simply times out.
"""

from typing import Optional

import structlog

from chatrelay.logs import mask_credential
from chatrelay.services.errors import QueueFullError
from chatrelay.services.registry import WorkItem, WorkerSession

logger = structlog.get_logger()


def enqueue(session: WorkerSession, item: WorkItem, max_pending: int = 0) -> None:
    """Append `item` to the worker's queue. max_pending=0 means unbounded."""
    if max_pending and session.pending_count >= max_pending:
        logger.warning(
            "dispatch.queue_full",
            credential=mask_credential(session.credential),
            pending=session.pending_count,
            max_pending=max_pending,
        )
        raise QueueFullError()
    session.pending[item.request_id] = item


def dequeue_next(session: WorkerSession) -> Optional[WorkItem]:
    """Pop the oldest item, or None when nothing is pending. Never blocks."""
    if not session.pending:
        return None
    _, item = session.pending.popitem(last=False)
    return item


def discard(session: WorkerSession, request_id: str) -> bool:
    """Remove a still-queued item. False if it was already dequeued."""
    return session.pending.pop(request_id, None) is not None
