"""API middleware package."""

from src.enablement.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.enablement.api.middleware.security import SecurityHeadersMiddleware

__all__ = ["LoggingMiddleware", "SecurityHeadersMiddleware", "configure_structlog"]
