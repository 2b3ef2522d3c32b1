"""Structured logging configuration and per-request log context."""

import logging
import sys
from typing import Any
from uuid import uuid4

import structlog

from animagenius.config import settings

REQUEST_ID_HEADER = "X-Request-Id"

# Longer string values (extracted text, base64 payloads, AI replies) are cut
# down before rendering.
MAX_LOGGED_VALUE_CHARS = 500


def truncate_long_values(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_LOGGED_VALUE_CHARS:
            event_dict[key] = f"{value[:MAX_LOGGED_VALUE_CHARS]}... ({len(value)} chars)"
    return event_dict


def setup_logging() -> None:
    """Configure structlog over stdlib logging.

    Renders JSON or colored console output depending on ``LOG_FORMAT``.
    Request-scoped fields bound with :func:`bind_request_context` are merged
    into every event logged while the request is being handled.
    """
    renderer: Any
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        truncate_long_values,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level.upper())

    for name in ("uvicorn.access", "httpx", "httpcore", "alembic.runtime.migration"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
    path: str | None = None,
) -> str:
    """Start a fresh log context for one API request and return its id."""
    request_id = request_id or uuid4().hex
    structlog.contextvars.clear_contextvars()
    context = {"request_id": request_id, "user_id": user_id, "path": path}
    structlog.contextvars.bind_contextvars(**{k: v for k, v in context.items() if v})
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance for a module."""
    return structlog.get_logger(name)
