"""FastAPI dependencies for services wired onto ``app.state`` by the lifespan.

Each getter raises 503 when the service was not initialized, so a route
never runs against a half-configured application.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from src.enablement.config import Settings
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.pipeline.enablement import EnablementPipeline
from src.enablement.pipeline.feedback import FeedbackProcessor
from src.enablement.reps.repository import RepRepository


def _get_service(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return service


def get_app_settings(request: Request) -> Settings:
    return _get_service(request, "settings")


def get_pipeline(request: Request) -> EnablementPipeline:
    return _get_service(request, "pipeline")


def get_feedback_processor(request: Request) -> FeedbackProcessor:
    return _get_service(request, "feedback_processor")


def get_knowledge_repository(request: Request) -> KnowledgeRepository:
    return _get_service(request, "knowledge_repository")


def get_rep_repository(request: Request) -> RepRepository:
    return _get_service(request, "rep_repository")
