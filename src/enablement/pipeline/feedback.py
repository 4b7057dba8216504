"""Feedback processing after a feedback webhook is acknowledged.

Every normalized FeedbackEntry is appended to the log. Field signals (rep
replies and call intel) are correlated with their delivery and forwarded to
the PMM. Telegram button presses additionally get a toast and have their
keyboard replaced with a single "clicked" button.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from src.enablement.delivery.channels import PmmNotifier
from src.enablement.feedback.correlate import find_delivery
from src.enablement.feedback.notify import build_field_signal_notification
from src.enablement.feedback.repository import FeedbackRepository
from src.enablement.feedback.schemas import FeedbackEntry
from src.enablement.services.telegram import TelegramClient

logger = structlog.get_logger(__name__)

NOOP_CALLBACK = "noop"


class FeedbackProcessor:
    """Logs feedback and notifies the PMM of field signals.

    Args:
        feedback: Delivery/feedback log repository.
        notifier: PMM notifier.
        telegram: Telegram client for callback acknowledgement, if configured.
    """

    def __init__(
        self,
        feedback: FeedbackRepository,
        notifier: PmmNotifier,
        telegram: TelegramClient | None = None,
    ) -> None:
        self._feedback = feedback
        self._notifier = notifier
        self._telegram = telegram

    async def process(self, entry: FeedbackEntry) -> None:
        await self._feedback.append_feedback(entry)
        logger.info(
            "feedback.recorded",
            source=entry.source.value,
            value=entry.value if not entry.is_field_signal else "field_signal",
            delivery_id=entry.delivery_id,
        )

        if not entry.is_field_signal:
            return

        log = await self._feedback.get()
        delivery = find_delivery(entry, log.deliveries)
        await self._notifier.notify(build_field_signal_notification(entry, delivery))

    async def acknowledge_callback(self, callback_query: Mapping[str, Any]) -> None:
        """Toast the rep and swap the inline keyboard for a clicked label."""
        if self._telegram is None:
            logger.warning("feedback.callback_ack_skipped", reason="telegram not configured")
            return

        data = str(callback_query.get("data") or "")
        helpful = data.startswith("helpful")

        toast = "✓ Marked as helpful" if helpful else "✓ Marked as not helpful"
        await self._telegram.answer_callback_query(str(callback_query.get("id") or ""), toast)

        message = callback_query.get("message")
        if not isinstance(message, Mapping):
            return
        chat = message.get("chat")
        message_id = message.get("message_id")
        if not message_id or not isinstance(chat, Mapping):
            return

        label = "✅ Helpful" if helpful else "❌ Not helpful"
        await self._telegram.edit_message_reply_markup(
            str(chat.get("id") or ""),
            int(message_id),
            {"inline_keyboard": [[{"text": label, "callback_data": NOOP_CALLBACK}]]},
        )
