"""Error boundary for work scheduled after a webhook response.

FastAPI BackgroundTasks run after the response is sent; an exception there
would only surface as an unhandled traceback. ``run_detached`` logs it with
context and swallows it so one bad payload never affects later requests.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


async def run_detached(label: str, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
    """Await ``fn(*args, **kwargs)``; log and return None on any exception."""
    try:
        return await fn(*args, **kwargs)
    except Exception:
        logger.error("task.failed", task=label, exc_info=True)
        return None
