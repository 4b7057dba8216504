"""Sync endpoints: receive the knowledge base and rep directory from the
curation host.

The PMM curates locally; the curation server pushes each write here so the
deployed webhook server reads the same data. Requests authenticate with
``Authorization: Bearer <SYNC_SECRET>``. Bodies are validated for shape,
parsed through the pydantic models, and written whole. Writes received here
are never pushed onward.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.enablement.api.deps import get_app_settings, get_knowledge_repository, get_rep_repository
from src.enablement.config import Settings
from src.enablement.core.errors import StoreError
from src.enablement.knowledge.repository import KB_KEY, KnowledgeRepository
from src.enablement.knowledge.schemas import KnowledgeBase
from src.enablement.reps.repository import REP_DIRECTORY_KEY, RepRepository
from src.enablement.reps.schemas import RepDirectory

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["sync"])

INVALID_KB = "Invalid knowledge base format: expected case_studies array and _meta object"
INVALID_DIRECTORY = "Invalid rep directory format: expected reps array and _meta object"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _authorize(request: Request, settings: Settings) -> JSONResponse | None:
    """Return an error response when the request may not sync, else None."""
    if not settings.SYNC_SECRET:
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Sync is not configured; set SYNC_SECRET on the server",
        )

    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return _error(status.HTTP_401_UNAUTHORIZED, "Missing Authorization header")

    if not secrets.compare_digest(header[7:].encode(), settings.SYNC_SECRET.encode()):
        logger.warning("sync.rejected", path=request.url.path)
        return _error(status.HTTP_403_FORBIDDEN, "Invalid sync secret")
    return None


async def _json_object(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def _has_shape(body: Any, collection: str) -> bool:
    return (
        isinstance(body, Mapping)
        and isinstance(body.get(collection), list)
        and isinstance(body.get("_meta"), Mapping)
    )


@router.put("/kb")
async def sync_knowledge_base(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    knowledge: KnowledgeRepository = Depends(get_knowledge_repository),
):
    """Overwrite the knowledge base."""
    denied = _authorize(request, settings)
    if denied is not None:
        return denied

    body = await _json_object(request)
    if not _has_shape(body, "case_studies"):
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_KB)
    try:
        kb = KnowledgeBase.model_validate(body)
    except ValidationError as exc:
        logger.warning("sync.kb_invalid", errors=exc.error_count())
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_KB)

    try:
        kb = await knowledge.replace(kb)
    except StoreError as exc:
        logger.error("sync.kb_write_failed", error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to write knowledge base")

    logger.info("sync.kb_updated", entries=kb.meta.entry_count)
    return {"synced": True, "file": f"{KB_KEY}.json", "entries": kb.meta.entry_count}


@router.put("/rep-directory")
async def sync_rep_directory(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    reps: RepRepository = Depends(get_rep_repository),
):
    """Overwrite the rep directory."""
    denied = _authorize(request, settings)
    if denied is not None:
        return denied

    body = await _json_object(request)
    if not _has_shape(body, "reps"):
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_DIRECTORY)
    try:
        directory = RepDirectory.model_validate(body)
    except ValidationError as exc:
        logger.warning("sync.directory_invalid", errors=exc.error_count())
        return _error(status.HTTP_400_BAD_REQUEST, INVALID_DIRECTORY)

    try:
        directory = await reps.replace(directory)
    except StoreError as exc:
        logger.error("sync.directory_write_failed", error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to write rep directory")

    logger.info("sync.directory_updated", reps=directory.meta.total_reps)
    return {"synced": True, "file": f"{REP_DIRECTORY_KEY}.json", "reps": directory.meta.total_reps}
