"""Health check endpoint.

Liveness only: no dependency is probed, the process answering is enough.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.enablement.api.deps import get_app_settings
from src.enablement.config import Settings

SERVICE_NAME = "jit-enablement-engine"

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_app_settings)):
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "channel": settings.CHANNEL.value,
        "port": settings.WEBHOOK_PORT,
    }
