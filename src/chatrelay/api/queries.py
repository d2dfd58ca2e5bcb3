"""Query API — external callers.

Learn: POST /api/query holds the caller's connection open while the
broker waits for the worker (up to the configured deadline, 3 minutes
by default). Relay errors (unknown worker, timeouts) are mapped to
status codes by the RelayError handler in main.py; anything else that
blows up during the wait becomes a 500 here, after the broker has
already cleaned the request out of the session.
"""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from chatrelay.api.deps import get_broker
from chatrelay.schemas.relay import QueryRequest, QueryResponse, StatusResponse
from chatrelay.services.broker import RelayBroker
from chatrelay.services.errors import RelayError, WorkerNotFoundError

router = APIRouter()

logger = structlog.get_logger()


@router.post("/api/query", response_model=QueryResponse)
async def submit_query(
    body: QueryRequest,
    broker: RelayBroker = Depends(get_broker),
):
    """Send a message to the worker and wait for its answer."""
    try:
        result = await broker.submit_query(
            body.credential,
            body.message,
            new_conversation=body.new_conversation,
        )
    except RelayError:
        raise
    except Exception as e:
        logger.exception("query.internal_error", error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "error": f"Server error: {e}",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    return QueryResponse.from_result(result)


@router.get("/api/status/{credential}", response_model=StatusResponse)
async def worker_status(
    credential: str,
    broker: RelayBroker = Depends(get_broker),
):
    """Liveness probe for one worker. Stale workers are evicted."""
    try:
        status = broker.status(credential)
    except WorkerNotFoundError as e:
        return JSONResponse(status_code=404, content={"active": False, "error": e.message})
    return StatusResponse.from_status(status)
