"""FastAPI application factory for the webhook server.

Creates the app with security headers, request logging, a generic 500
handler, lifespan wiring of every service onto ``app.state``, and the v1
router (health, webhooks, sync).
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.enablement.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.enablement.api.middleware.security import SecurityHeadersMiddleware
from src.enablement.api.v1.router import router as v1_router
from src.enablement.config import Channel, Settings, get_settings
from src.enablement.core.errors import ConfigurationError
from src.enablement.core.store import JsonFileStore
from src.enablement.deals.resolve import IdentityResolver
from src.enablement.delivery.channels import PmmNotifier, SlackChannel, TelegramChannel
from src.enablement.feedback.repository import FeedbackRepository
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.pipeline.enablement import EnablementPipeline
from src.enablement.pipeline.feedback import FeedbackProcessor
from src.enablement.reps.repository import RepRepository
from src.enablement.services.llm import LLMService
from src.enablement.services.slack import SlackClient
from src.enablement.services.telegram import TelegramClient

logger = structlog.get_logger(__name__)


def wire_services(app: FastAPI, settings: Settings) -> None:
    """Build repositories, platform clients and pipelines onto ``app.state``."""
    store = JsonFileStore(settings.data_path)
    knowledge = KnowledgeRepository(store)
    feedback = FeedbackRepository(store)
    reps = RepRepository(store)

    slack = None
    if settings.SLACK_BOT_TOKEN or settings.CHANNEL == Channel.slack:
        slack = SlackClient(settings.SLACK_BOT_TOKEN, timeout=settings.HTTP_TIMEOUT)
    telegram = None
    if settings.TELEGRAM_BOT_TOKEN or settings.CHANNEL == Channel.telegram:
        telegram = TelegramClient(settings.TELEGRAM_BOT_TOKEN, timeout=settings.HTTP_TIMEOUT)

    sender = TelegramChannel(telegram) if settings.CHANNEL == Channel.telegram else SlackChannel(slack)
    notifier = PmmNotifier(
        settings.CHANNEL,
        slack=slack,
        telegram=telegram,
        pmm_slack_id=settings.PMM_SLACK_ID,
        pmm_telegram_chat_id=settings.PMM_TELEGRAM_CHAT_ID,
    )
    llm = LLMService(settings)

    app.state.settings = settings
    app.state.store = store
    app.state.knowledge_repository = knowledge
    app.state.feedback_repository = feedback
    app.state.rep_repository = reps
    app.state.llm_service = llm
    app.state.pipeline = EnablementPipeline(
        channel=settings.CHANNEL,
        knowledge=knowledge,
        feedback=feedback,
        resolver=IdentityResolver(reps, slack=slack),
        sender=sender,
        notifier=notifier,
        llm=llm,
        pmm_telegram_chat_id=settings.PMM_TELEGRAM_CHAT_ID,
    )
    app.state.feedback_processor = FeedbackProcessor(feedback, notifier, telegram=telegram)

    logger.info(
        "app.services_initialized",
        channel=settings.CHANNEL.value,
        data_dir=str(settings.data_path),
        llm_available=llm.available,
        sync_enabled=bool(settings.SYNC_SECRET),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and wire services on startup."""
    settings: Settings = app.state.settings
    configure_structlog(settings)
    wire_services(app, settings)
    logger.info("app.started", environment=settings.ENVIRONMENT.value, port=settings.WEBHOOK_PORT)
    yield
    logger.info("app.stopped")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("app.unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="JIT Enablement Engine",
        version="0.1.0",
        description="CRM stage-change webhooks in, grounded enablement packages out.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware is added in reverse order (last added = outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(v1_router)
    return app


def run() -> None:
    """Console entry point: validate settings and serve with uvicorn."""
    settings = get_settings()
    configure_structlog(settings)
    try:
        settings.validate_for_server()
    except ConfigurationError as exc:
        logger.error("app.config_invalid", error=str(exc))
        raise SystemExit(1) from exc

    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.WEBHOOK_PORT)


if __name__ == "__main__":
    run()
