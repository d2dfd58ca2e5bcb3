"""Request ID middleware — unique ID per request for tracing.

Learn: Every request gets an ID, either from the incoming X-Request-ID
header or generated here. It is bound to structlog's contextvars, so
the broker's log lines for a query (enqueued, waiting, completed) all
carry the same request_id, and it is echoed in the response header.
One access line per request records status and latency — long-held
/api/query calls show up with their real wait time.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        # /poll is hit every few seconds per worker, keep it out of info logs
        log = logger.debug if request.url.path.startswith("/poll/") else logger.info
        log(
            "http.request",
            method=request.method,
            path=_redact_path(request.url.path),
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response


def _redact_path(path: str) -> str:
    """Mask the credential segment of worker/status paths."""
    parts = path.split("/")
    # /poll/{credential}, /response/{credential}/{id}, /api/status/{credential}
    if len(parts) > 2 and parts[1] in ("poll", "response"):
        parts[2] = parts[2][:8] + "..."
    elif len(parts) > 3 and parts[1] == "api" and parts[2] == "status":
        parts[3] = parts[3][:8] + "..."
    return "/".join(parts)
