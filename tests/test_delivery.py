"""Tests for channel formatting, package delivery and PMM notification routing."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.enablement.config import Channel
from src.enablement.core.errors import DeliveryError
from src.enablement.deals.schemas import DealContext
from src.enablement.delivery.channels import PmmNotifier, SlackChannel, TelegramChannel
from src.enablement.delivery.formatters import format_slack_message, format_telegram_message
from src.enablement.delivery.log import build_delivery_entry
from src.enablement.feedback.schemas import NotificationType, PmmNotification
from src.enablement.services.slack import PlatformResponse

OK = PlatformResponse(ok=True)


@pytest.fixture
def deal() -> DealContext:
    return DealContext(
        deal_name="Acme <Platform> & Co",
        deal_stage="Proposal Sent",
        company_name="Acme Corp",
        rep_messaging_id="U04HUBSPOT1",
        rep_email="sarah@example.com",
    )


@pytest.fixture
def notification() -> PmmNotification:
    return PmmNotification(text="📉 *Deal Outcome: Closed Lost*", deal_name="Acme", type=NotificationType.outcome)


def _client(**methods) -> MagicMock:
    client = MagicMock()
    for name, result in methods.items():
        setattr(client, name, AsyncMock(return_value=result))
    return client


# ── Formatters ───────────────────────────────────────────────────────────────


class TestFormatters:
    def test_slack_message(self, deal):
        message = format_slack_message(deal, "PACKAGE BODY", "del-1")

        assert message.channel == "U04HUBSPOT1"
        assert message.text == "JIT Enablement: Acme <Platform> & Co (Proposal Sent)"
        assert message.blocks[2]["text"]["text"] == "PACKAGE BODY"

        actions = next(b for b in message.blocks if b["type"] == "actions")["elements"]
        assert [(a["action_id"], a["value"]) for a in actions] == [
            ("feedback_helpful", "del-1"),
            ("feedback_not_helpful", "del-1"),
        ]
        context = message.blocks[-1]["elements"][0]["text"]
        assert "Ref: del-1" in context

    def test_telegram_message_escapes_html(self, deal):
        message = format_telegram_message(deal, "Use <this> & that", "del-2")

        assert message.chat_id == "U04HUBSPOT1"
        assert message.parse_mode == "HTML"
        assert "<b>Deal:</b> Acme &lt;Platform&gt; &amp; Co" in message.text
        assert "Use &lt;this&gt; &amp; that" in message.text
        assert "<i>Ref: del-2</i>" in message.text
        buttons = message.reply_markup["inline_keyboard"][0]
        assert [b["callback_data"] for b in buttons] == ["helpful:del-2", "not_helpful:del-2"]

    def test_delivery_entry(self, deal):
        entry = build_delivery_entry(deal, "del-3", "slack", ["cs-001"], [])

        assert entry.delivery_id == "del-3"
        assert entry.rep_id == "U04HUBSPOT1"
        assert entry.case_studies_surfaced == ["cs-001"]
        assert entry.competitors_surfaced == []
        assert entry.timestamp.endswith("Z")

    def test_delivery_entry_rep_id_fallbacks(self):
        assert build_delivery_entry(DealContext(rep_email="a@example.com"), "d", "slack", [], []).rep_id == "a@example.com"
        assert build_delivery_entry(DealContext(), "d", "slack", [], []).rep_id == "unknown"


# ── Channels ─────────────────────────────────────────────────────────────────


class TestChannels:
    async def test_slack_channel_posts_blocks(self, deal):
        client = _client(post_message=OK)

        await SlackChannel(client).deliver(deal, "PACKAGE", "del-1")

        channel, text, blocks = client.post_message.call_args.args
        assert channel == "U04HUBSPOT1"
        assert text.startswith("JIT Enablement:")
        assert any(b["type"] == "actions" for b in blocks)

    async def test_slack_failure_raises_delivery_error(self, deal):
        client = _client(post_message=PlatformResponse(ok=False, error="channel_not_found"))

        with pytest.raises(DeliveryError) as exc_info:
            await SlackChannel(client).deliver(deal, "PACKAGE", "del-1")

        assert exc_info.value.platform == "slack"
        assert exc_info.value.endpoint == "chat.postMessage"
        assert exc_info.value.description == "channel_not_found"

    async def test_telegram_channel_sends_keyboard(self, deal):
        client = _client(send_message=OK)

        await TelegramChannel(client).deliver(deal, "PACKAGE", "del-1")

        kwargs = client.send_message.call_args.kwargs
        assert client.send_message.call_args.args[0] == "U04HUBSPOT1"
        assert kwargs["parse_mode"] == "HTML"
        assert "inline_keyboard" in kwargs["reply_markup"]

    async def test_telegram_failure_raises_delivery_error(self, deal):
        client = _client(send_message=PlatformResponse(ok=False, error="Forbidden: bot was blocked by the user"))

        with pytest.raises(DeliveryError, match="bot was blocked"):
            await TelegramChannel(client).deliver(deal, "PACKAGE", "del-1")

    def test_channel_names(self):
        assert SlackChannel(MagicMock()).name == "slack"
        assert TelegramChannel(MagicMock()).name == "telegram"


# ── PMM routing ──────────────────────────────────────────────────────────────


class TestPmmNotifier:
    async def test_slack_route(self, notification):
        slack = _client(post_text=OK)
        notifier = PmmNotifier(Channel.slack, slack=slack, pmm_slack_id="UPMM")

        assert await notifier.notify(notification) is True
        slack.post_text.assert_awaited_once_with("UPMM", notification.text)

    async def test_telegram_preferred_on_telegram_channel(self, notification):
        slack = _client(post_text=OK)
        telegram = _client(send_text=OK)
        notifier = PmmNotifier(
            Channel.telegram, slack=slack, telegram=telegram, pmm_slack_id="UPMM", pmm_telegram_chat_id="999"
        )

        assert await notifier.notify(notification) is True
        telegram.send_text.assert_awaited_once_with("999", notification.text)
        slack.post_text.assert_not_awaited()

    async def test_falls_back_to_other_channel(self, notification):
        telegram = _client(send_text=OK)
        notifier = PmmNotifier(Channel.slack, slack=_client(post_text=OK), telegram=telegram, pmm_telegram_chat_id="999")

        assert await notifier.notify(notification) is True
        telegram.send_text.assert_awaited_once()

    async def test_no_route(self, notification):
        assert await PmmNotifier(Channel.slack).notify(notification) is False

    async def test_failed_send_returns_false(self, notification):
        slack = _client(post_text=PlatformResponse(ok=False, error="not_in_channel"))
        notifier = PmmNotifier(Channel.slack, slack=slack, pmm_slack_id="UPMM")

        assert await notifier.notify(notification) is False
