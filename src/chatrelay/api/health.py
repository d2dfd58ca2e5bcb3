"""Health check endpoint.

Learn: The relay has no external dependencies to probe — it is healthy
whenever it can answer. The payload reports uptime and how many worker
sessions are currently registered.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from chatrelay import __version__
from chatrelay.api.deps import get_broker
from chatrelay.schemas.relay import HealthResponse
from chatrelay.services.broker import RelayBroker

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(broker: RelayBroker = Depends(get_broker)):
    """Report relay uptime and registered worker count."""
    return HealthResponse(
        status="ok",
        version=__version__,
        uptime=round(broker.uptime(), 3),
        active_worker_count=broker.active_worker_count,
        timestamp=datetime.now(timezone.utc),
    )
