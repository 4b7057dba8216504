"""Feedback payload normalizer.

Recognizes the inbound feedback shapes from both channels and the call
intel endpoint, checked in this order (first match wins):

    1. Slack URL verification   {type: "url_verification", challenge}
    2. Slack button click       {payload: <JSON string or object> with actions[]}
    3. Slack thread reply       {event: {text, thread_ts}}
    4. Telegram button press    {callback_query: {data: "<value>:<delivery_id>"}}
                                (data without a colon, such as the "noop"
                                label left after a press, falls through)
    5. Telegram text reply      {message: {text, reply_to_message}}
    6. Call intel               {deal_name, summary}

Anything else returns None. Callers treat None as "ignore and log"; webhook
senders always get a 200 regardless.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import structlog

from src.enablement.core.ids import generate_feedback_id
from src.enablement.feedback.schemas import (
    FIELD_SIGNAL,
    HELPFUL,
    NOT_HELPFUL,
    FeedbackEntry,
    FeedbackSource,
    VerificationChallenge,
)

logger = structlog.get_logger(__name__)

HELPFUL_ACTION_ID = "feedback_helpful"
SLACK_THREAD_PREFIX = "thread-"
TELEGRAM_MESSAGE_PREFIX = "tg-msg-"
CALLBACK_SEPARATOR = ":"

_MALFORMED = object()


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def is_feedback_callback(callback: Any) -> bool:
    """True for a Telegram callback query carrying ``<value>:<delivery_id>`` data."""
    return isinstance(callback, Mapping) and CALLBACK_SEPARATOR in _text(callback.get("data"))


def _decode_interactive_payload(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return _MALFORMED
    return value


def parse_feedback(body: Any) -> FeedbackEntry | VerificationChallenge | None:
    """Normalize a feedback webhook body.

    Returns a VerificationChallenge for the Slack handshake, a FeedbackEntry
    for a recognized shape, or None.
    """
    if not isinstance(body, Mapping):
        return None

    # 1. Slack URL verification
    if body.get("type") == "url_verification" and body.get("challenge"):
        return VerificationChallenge(challenge=_text(body["challenge"]))

    # 2. Slack interactive payload (button click)
    if body.get("payload"):
        parsed = _decode_interactive_payload(body["payload"])
        if parsed is _MALFORMED:
            logger.warning("feedback.malformed_payload")
            return None
        actions = parsed.get("actions") if isinstance(parsed, Mapping) else None
        if isinstance(actions, list) and actions and isinstance(actions[0], Mapping):
            action = actions[0]
            user = parsed.get("user")
            return FeedbackEntry(
                id=generate_feedback_id(),
                delivery_id=_text(action.get("value")),
                source=FeedbackSource.reaction,
                value=HELPFUL if action.get("action_id") == HELPFUL_ACTION_ID else NOT_HELPFUL,
                rep_id=_text(user.get("id")) if isinstance(user, Mapping) else "",
            )

    # 3. Slack Events API thread reply
    event = body.get("event")
    if isinstance(event, Mapping) and event.get("text") and event.get("thread_ts"):
        return FeedbackEntry(
            id=generate_feedback_id(),
            delivery_id=f"{SLACK_THREAD_PREFIX}{event['thread_ts']}",
            source=FeedbackSource.reply,
            value=FIELD_SIGNAL,
            raw_text=_text(event["text"]),
            rep_id=_text(event.get("user")),
        )

    # 4. Telegram callback query (inline button)
    callback = body.get("callback_query")
    if is_feedback_callback(callback):
        segments = _text(callback.get("data")).split(CALLBACK_SEPARATOR)
        sender = callback.get("from")
        return FeedbackEntry(
            id=generate_feedback_id(),
            delivery_id=segments[1] if len(segments) > 1 else "",
            source=FeedbackSource.reaction,
            value=segments[0],
            rep_id=_text(sender.get("id")) if isinstance(sender, Mapping) else "",
        )

    # 5. Telegram text reply to a bot message
    message = body.get("message")
    if isinstance(message, Mapping):
        reply_to = message.get("reply_to_message")
        if message.get("text") and reply_to:
            reply_id = reply_to.get("message_id") if isinstance(reply_to, Mapping) else None
            sender = message.get("from")
            return FeedbackEntry(
                id=generate_feedback_id(),
                delivery_id=f"{TELEGRAM_MESSAGE_PREFIX}{_text(reply_id)}",
                source=FeedbackSource.reply,
                value=FIELD_SIGNAL,
                raw_text=_text(message["text"]),
                rep_id=_text(sender.get("id")) if isinstance(sender, Mapping) else "",
            )

    # 6. Call intel
    if body.get("deal_name") and body.get("summary"):
        summary = _text(body["summary"])
        return FeedbackEntry(
            id=generate_feedback_id(),
            source=FeedbackSource.call_intel,
            value=summary,
            raw_text=summary,
            rep_id=_text(body.get("rep_id")),
            deal_name=_text(body["deal_name"]),
        )

    return None
