"""Delivery channels for rep packages and PMM notifications.

Exports:
    DeliveryChannel: Protocol the pipeline sends packages through.
    SlackChannel: Block Kit DM delivery via SlackClient.
    TelegramChannel: HTML + inline keyboard delivery via TelegramClient.
    PmmNotifier: Routes PMM notifications to the PMM's Slack or Telegram address.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from src.enablement.config import Channel
from src.enablement.core.errors import DeliveryError
from src.enablement.deals.schemas import DealContext
from src.enablement.delivery.formatters import format_slack_message, format_telegram_message
from src.enablement.feedback.schemas import PmmNotification
from src.enablement.services.slack import SlackClient
from src.enablement.services.telegram import TelegramClient

logger = structlog.get_logger(__name__)


class DeliveryChannel(Protocol):
    name: str

    async def deliver(self, deal: DealContext, content: str, delivery_id: str) -> None:
        """Send a package to ``deal.rep_messaging_id``; raise DeliveryError on failure."""
        ...


class SlackChannel:
    name = Channel.slack.value

    def __init__(self, client: SlackClient) -> None:
        self._client = client

    async def deliver(self, deal: DealContext, content: str, delivery_id: str) -> None:
        message = format_slack_message(deal, content, delivery_id)
        result = await self._client.post_message(message.channel, message.text, message.blocks)
        if not result.ok:
            raise DeliveryError("slack", "chat.postMessage", result.error or "unknown error")


class TelegramChannel:
    name = Channel.telegram.value

    def __init__(self, client: TelegramClient) -> None:
        self._client = client

    async def deliver(self, deal: DealContext, content: str, delivery_id: str) -> None:
        message = format_telegram_message(deal, content, delivery_id)
        result = await self._client.send_message(
            message.chat_id,
            message.text,
            reply_markup=message.reply_markup,
            parse_mode=message.parse_mode,
        )
        if not result.ok:
            raise DeliveryError("telegram", "sendMessage", result.error or "unknown error")


class PmmNotifier:
    """Sends outcome and field-signal alerts to the PMM.

    The active channel's PMM address is preferred; the other channel is used
    when only it is configured. With neither, notifications are logged and
    dropped.
    """

    def __init__(
        self,
        channel: Channel,
        slack: SlackClient | None = None,
        telegram: TelegramClient | None = None,
        pmm_slack_id: str = "",
        pmm_telegram_chat_id: str = "",
    ) -> None:
        self._channel = channel
        self._slack = slack
        self._telegram = telegram
        self._pmm_slack_id = pmm_slack_id
        self._pmm_telegram_chat_id = pmm_telegram_chat_id

    def _via_slack(self) -> bool:
        return self._slack is not None and bool(self._pmm_slack_id)

    def _via_telegram(self) -> bool:
        return self._telegram is not None and bool(self._pmm_telegram_chat_id)

    async def notify(self, notification: PmmNotification) -> bool:
        """Send ``notification``. Returns False if no route or the send failed."""
        order = (
            ("telegram", "slack") if self._channel == Channel.telegram else ("slack", "telegram")
        )
        for route in order:
            if route == "telegram" and self._via_telegram():
                result = await self._telegram.send_text(self._pmm_telegram_chat_id, notification.text)
            elif route == "slack" and self._via_slack():
                result = await self._slack.post_text(self._pmm_slack_id, notification.text)
            else:
                continue
            if result.ok:
                logger.info("pmm.notified", type=notification.type.value, deal_name=notification.deal_name, via=route)
            else:
                logger.warning("pmm.notify_failed", type=notification.type.value, via=route, error=result.error)
            return result.ok

        logger.info("pmm.no_route", type=notification.type.value, deal_name=notification.deal_name)
        return False
