"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Paths are unprefixed because the browser extension hard-codes
/register, /poll and /response. The credential in the path or body is
the only auth there is, so no router-level auth dependency applies.
"""

from fastapi import APIRouter

from chatrelay.api.health import router as health_router
from chatrelay.api.queries import router as queries_router
from chatrelay.api.workers import router as workers_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(workers_router, tags=["worker"])
api_router.include_router(queries_router, tags=["query"])
