"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The broker (and the registry it owns) is created here and
stored on app.state, so its lifetime is the app's lifetime and tests
can build an app with their own short timeouts. Lifespan only manages
the background sweeper and logging setup.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatrelay import __version__
from chatrelay.api import api_router
from chatrelay.config import Settings, settings as default_settings
from chatrelay.logs import configure_logging
from chatrelay.services.broker import RelayBroker
from chatrelay.services.errors import RelayError
from chatrelay.services.sweeper import ResultSweeper

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs
    at shutdown. In-memory sessions die with the process — no flush.
    """
    cfg: Settings = app.state.settings
    configure_logging(cfg.log_level, json_output=cfg.log_json)
    logger.info(
        "chatrelay.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        request_timeout=cfg.request_timeout_seconds,
        liveness_threshold=cfg.liveness_threshold_seconds,
    )

    sweeper = ResultSweeper(app.state.broker, interval=cfg.sweep_interval_seconds)
    sweep_task = asyncio.create_task(sweeper.run_loop())

    yield

    logger.info("chatrelay.shutdown", workers=app.state.broker.active_worker_count)
    sweeper.stop()
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    content: dict = {"error": exc.message}
    if exc.status_code >= 500:
        content["timestamp"] = datetime.now(timezone.utc).isoformat()
    return JSONResponse(status_code=exc.status_code, content=content)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing/empty fields are a plain 400, like every other relay error."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
    fields = sorted({
        str(err["loc"][-1]) for err in errors if err.get("loc")
    })
    message = "Missing or invalid fields: " + ", ".join(fields) if fields else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    cfg = app_settings or default_settings

    app = FastAPI(
        title="chatrelay",
        description="Relay HTTP queries to a browser chat session driven by an extension",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.broker = RelayBroker.from_settings(cfg)

    # ── Middleware stack ──────────────────────────────────────
    # Request flow: RequestId → CORS → handler

    from chatrelay.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(RelayError, _relay_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: chatrelay.main:app)
app = create_app()
