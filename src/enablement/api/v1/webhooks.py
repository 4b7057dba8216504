"""Inbound webhooks: CRM stage changes, feedback, Telegram updates, call intel.

Every route acknowledges immediately and hands the work to a FastAPI
background task wrapped in ``run_detached``; CRM and chat platforms never
wait on generation or delivery. Malformed JSON bodies are treated as ``{}``.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse

from src.enablement.api.deps import get_feedback_processor, get_pipeline
from src.enablement.core.ids import generate_feedback_id
from src.enablement.feedback.parse import is_feedback_callback, parse_feedback
from src.enablement.feedback.schemas import FeedbackEntry, FeedbackSource, VerificationChallenge
from src.enablement.pipeline.enablement import EnablementPipeline
from src.enablement.pipeline.feedback import FeedbackProcessor
from src.enablement.pipeline.tasks import run_detached

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])

MAX_DEAL_NAME_LENGTH = 500
MAX_SUMMARY_LENGTH = 10_000
MAX_REP_ID_LENGTH = 200

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_body(request: Request) -> dict[str, Any]:
    """Decode a JSON or form-encoded body; anything unreadable becomes {}."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items()}

    try:
        body = await request.json()
    except ValueError:
        logger.warning("webhook.malformed_body", path=request.url.path)
        return {}
    return body if isinstance(body, dict) else {}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


# ── CRM ─────────────────────────────────────────────────────────────────────


@router.post("/crm")
async def crm_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    pipeline: EnablementPipeline = Depends(get_pipeline),
) -> dict:
    """Deal stage change from any supported CRM."""
    raw = await read_body(request)
    background_tasks.add_task(run_detached, "crm", pipeline.handle_crm_event, raw)
    return {"received": True}


# ── Feedback (Slack interactions and events) ────────────────────────────────


@router.post("/feedback")
async def feedback_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    processor: FeedbackProcessor = Depends(get_feedback_processor),
) -> dict:
    body = await read_body(request)
    result = parse_feedback(body)

    if isinstance(result, VerificationChallenge):
        return {"challenge": result.challenge}

    if result is None:
        logger.info("feedback.unrecognized", keys=sorted(body)[:10])
    else:
        background_tasks.add_task(run_detached, "feedback", processor.process, result)
    return {"ok": True}


# ── Telegram ────────────────────────────────────────────────────────────────


@router.post("/telegram")
async def telegram_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    processor: FeedbackProcessor = Depends(get_feedback_processor),
) -> dict:
    """Bot update: inline button press or a reply to a delivered package."""
    body = await read_body(request)

    callback_query = body.get("callback_query")
    if is_feedback_callback(callback_query):
        background_tasks.add_task(
            run_detached, "telegram.callback_ack", processor.acknowledge_callback, callback_query
        )

    result = parse_feedback(body)
    if isinstance(result, FeedbackEntry):
        background_tasks.add_task(run_detached, "telegram.feedback", processor.process, result)
    return {"ok": True}


# ── Call intel ──────────────────────────────────────────────────────────────


@router.post("/call-intel")
async def call_intel_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    processor: FeedbackProcessor = Depends(get_feedback_processor),
):
    """Freeform call summary from a recorder, a Zap, or a manual paste."""
    body = await read_body(request)

    deal_name = body.get("deal_name")
    summary = body.get("summary")
    deal_name = deal_name.strip() if isinstance(deal_name, str) else ""
    summary = summary.strip() if isinstance(summary, str) else ""

    if not deal_name or not summary:
        return _bad_request("Missing required fields: deal_name, summary")
    if len(deal_name) > MAX_DEAL_NAME_LENGTH:
        return _bad_request("deal_name exceeds 500 character limit")
    if len(summary) > MAX_SUMMARY_LENGTH:
        return _bad_request("summary exceeds 10,000 character limit")

    rep_id = body.get("rep_id")
    entry = FeedbackEntry(
        id=generate_feedback_id(),
        source=FeedbackSource.call_intel,
        value=summary,
        raw_text=summary,
        rep_id=rep_id[:MAX_REP_ID_LENGTH] if isinstance(rep_id, str) else "",
        deal_name=deal_name,
    )
    background_tasks.add_task(run_detached, "call_intel", processor.process, entry)
    return {"received": True}
