"""Structured request logging middleware.

Logs every request with:
- method, path, status_code, duration_ms
- request_id (taken from an incoming X-Request-ID or generated, bound into
  the structlog context and echoed on the response)

Uses structlog for structured JSON logging in production and
human-readable console output in development. Output goes to stderr so the
stdio curation server keeps stdout for its protocol stream.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.enablement.config import Environment, Settings, get_settings

logger = structlog.get_logger(__name__)


def configure_structlog(settings: Settings | None = None) -> None:
    """Configure structlog processors based on environment."""
    settings = settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.ENVIRONMENT == Environment.production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Times each request and logs one ``request.*`` event for it.

    The request id is bound into structlog's context for the duration of the
    request, so pipeline events logged from background tasks carry it too,
    and it is echoed back as ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.monotonic()

        def elapsed_ms() -> float:
            return round((time.monotonic() - started) * 1000, 2)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request.failed", method=request.method, path=request.url.path, duration_ms=elapsed_ms())
            raise

        response.headers["X-Request-ID"] = request_id
        status = response.status_code
        if status >= 500:
            emit = logger.error
        elif status >= 400:
            emit = logger.warning
        else:
            emit = logger.info
        emit(
            "request.completed",
            method=request.method,
            path=request.url.path,
            status_code=status,
            duration_ms=elapsed_ms(),
        )
        return response
