"""structlog setup.

Learn: Every module does `logger = structlog.get_logger()` and logs
dotted event names with key-value context. This module wires the
processor chain once at startup: contextvars (request_id bound by
RequestIdMiddleware) → level → timestamp → console or JSON renderer.
"""

import logging

import structlog


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog for the process."""
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


def mask_credential(credential: str) -> str:
    """Shorten a credential for logs — it is a bearer secret."""
    if not credential:
        return "<empty>"
    return f"{credential[:8]}..."
