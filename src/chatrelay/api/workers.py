"""Worker API — the browser extension's side of the relay.

Learn: Three routes, all driven by the worker:
- POST /register → announce (or re-announce) an API key
- GET /poll/{credential} → take the next queued query, if any
- POST /response/{credential}/{request_id} → hand back the answer

Polling never blocks. When nothing is queued the worker is told
{"waiting": true} and retries on its own cadence.
"""

from typing import Union

from fastapi import APIRouter, Depends

from chatrelay.api.deps import get_broker
from chatrelay.schemas.relay import (
    RegisterRequest,
    ResultPost,
    SuccessResponse,
    WaitingResponse,
    WorkItemRead,
)
from chatrelay.services.broker import RelayBroker

router = APIRouter()


@router.post("/register", response_model=SuccessResponse)
async def register_worker(
    body: RegisterRequest,
    broker: RelayBroker = Depends(get_broker),
):
    """Register a worker. Safe to repeat — queued work is preserved."""
    broker.register(body.identity, body.credential)
    return SuccessResponse()


@router.get("/poll/{credential}", response_model=Union[WorkItemRead, WaitingResponse])
async def poll_for_work(
    credential: str,
    broker: RelayBroker = Depends(get_broker),
):
    """Pop the oldest queued query for this worker, or report waiting."""
    item = broker.poll_for_work(credential)
    if item is None:
        return WaitingResponse()
    return WorkItemRead.from_item(item)


@router.post("/response/{credential}/{request_id}", response_model=SuccessResponse)
async def post_result(
    credential: str,
    request_id: str,
    body: ResultPost,
    broker: RelayBroker = Depends(get_broker),
):
    """Deliver the worker's response (or error) for one request."""
    broker.submit_result(credential, request_id, response=body.response, error=body.error)
    return SuccessResponse()
