"""Async client for the Telegram Bot API.

Covers sending HTML messages with inline keyboards, plain-text PMM
notifications, and the two calls that acknowledge an inline button press
(answerCallbackQuery and editMessageReplyMarkup).
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.enablement.services.slack import PlatformResponse

logger = structlog.get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramClient:
    """Telegram Bot API client.

    Args:
        bot_token: Bot token from BotFather.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests inject a mock).
    """

    def __init__(
        self,
        bot_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._timeout = timeout
        self._transport = transport

    async def _call(self, method: str, payload: dict[str, Any]) -> PlatformResponse:
        url = f"{TELEGRAM_API_BASE}/bot{self._bot_token}/{method}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("telegram.request_failed", method=method, error=str(exc))
            return PlatformResponse(ok=False, error=str(exc))

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not body.get("ok"):
            description = body.get("description") or f"http_{response.status_code}"
            logger.warning(
                "telegram.api_error",
                method=method,
                status_code=response.status_code,
                description=description,
                chat_id=payload.get("chat_id"),
            )
            return PlatformResponse(ok=False, error=description, data=body)

        return PlatformResponse(ok=True, data=body)

    async def send_message(
        self,
        chat_id: str,
        text: str,
        reply_markup: dict[str, Any] | None = None,
        parse_mode: str | None = "HTML",
    ) -> PlatformResponse:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        return await self._call("sendMessage", payload)

    async def send_text(self, chat_id: str, text: str) -> PlatformResponse:
        # PMM notifications use Slack-style *bold*, so no parse mode
        return await self.send_message(chat_id, text, parse_mode=None)

    async def answer_callback_query(self, callback_query_id: str, text: str) -> PlatformResponse:
        return await self._call(
            "answerCallbackQuery",
            {"callback_query_id": callback_query_id, "text": text},
        )

    async def edit_message_reply_markup(
        self,
        chat_id: str,
        message_id: int,
        reply_markup: dict[str, Any] | None = None,
    ) -> PlatformResponse:
        return await self._call(
            "editMessageReplyMarkup",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "reply_markup": reply_markup or {"inline_keyboard": []},
            },
        )
