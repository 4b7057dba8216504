"""Channel message formatting for enablement packages.

Slack gets a Block Kit message with a deal header, the package, feedback
buttons whose value is the delivery id, and a thread-reply prompt. Telegram
gets an HTML message with an inline keyboard whose callback data is
``<value>:<delivery_id>``, the shape the feedback normalizer splits.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.enablement.deals.schemas import DealContext

HELPFUL_BUTTON = "👍 Helpful"
NOT_HELPFUL_BUTTON = "👎 Not helpful"


class SlackMessage(BaseModel):
    channel: str
    text: str
    blocks: list[dict[str, Any]] = Field(default_factory=list)
    delivery_id: str


class TelegramMessage(BaseModel):
    chat_id: str
    text: str
    parse_mode: str = "HTML"
    reply_markup: dict[str, Any] = Field(default_factory=dict)
    delivery_id: str


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def format_slack_message(deal: DealContext, content: str, delivery_id: str) -> SlackMessage:
    header = (
        "*JIT Enablement Alert*\n\n"
        f"*Deal:* {deal.deal_name}\n"
        f"*Stage:* {deal.deal_stage}\n"
        f"*Company:* {deal.company_name}"
    )
    blocks: list[dict[str, Any]] = [
        {"type": "section", "text": {"type": "mrkdwn", "text": header}},
        {"type": "divider"},
        {"type": "section", "text": {"type": "mrkdwn", "text": content}},
        {"type": "divider"},
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": HELPFUL_BUTTON},
                    "action_id": "feedback_helpful",
                    "value": delivery_id,
                },
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": NOT_HELPFUL_BUTTON},
                    "action_id": "feedback_not_helpful",
                    "value": delivery_id,
                },
            ],
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"_Reply to this thread if you heard something new on the call._ | _Ref: {delivery_id}_",
                }
            ],
        },
    ]
    return SlackMessage(
        channel=deal.rep_messaging_id,
        text=f"JIT Enablement: {deal.deal_name} ({deal.deal_stage})",
        blocks=blocks,
        delivery_id=delivery_id,
    )


def format_telegram_message(deal: DealContext, content: str, delivery_id: str) -> TelegramMessage:
    text = (
        "<b>JIT Enablement Alert</b>\n\n"
        f"<b>Deal:</b> {escape_html(deal.deal_name)}\n"
        f"<b>Stage:</b> {escape_html(deal.deal_stage)}\n"
        f"<b>Company:</b> {escape_html(deal.company_name)}\n\n"
        f"{escape_html(content)}\n\n"
        "---\n"
        "<i>Reply if you heard something new on the call.</i>\n"
        f"<i>Ref: {delivery_id}</i>"
    )
    return TelegramMessage(
        chat_id=deal.rep_messaging_id,
        text=text,
        reply_markup={
            "inline_keyboard": [
                [
                    {"text": HELPFUL_BUTTON, "callback_data": f"helpful:{delivery_id}"},
                    {"text": NOT_HELPFUL_BUTTON, "callback_data": f"not_helpful:{delivery_id}"},
                ]
            ]
        },
        delivery_id=delivery_id,
    )
