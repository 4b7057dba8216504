"""Tests for the Slack, Telegram, LLM and remote sync clients.

HTTP clients are exercised against ``httpx.MockTransport`` handlers; the
LLM router is replaced with a mock.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.enablement.core.errors import GenerationError
from src.enablement.core.sync import KB_ENDPOINT, RemoteSync
from src.enablement.services.llm import MODEL_GROUP, LLMService
from src.enablement.services.slack import SlackClient
from src.enablement.services.telegram import TelegramClient


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


# ── Slack ────────────────────────────────────────────────────────────────────


class TestSlackClient:
    async def test_post_message(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True, "ts": "1700.1"}))
        client = SlackClient("xoxb-test", transport=recorder.transport)

        result = await client.post_message("U123", "hello", [{"type": "divider"}])

        assert result.ok is True
        assert result.data["ts"] == "1700.1"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://slack.com/api/chat.postMessage"
        assert request.headers["Authorization"] == "Bearer xoxb-test"
        body = json.loads(request.content)
        assert body["channel"] == "U123"
        assert body["blocks"] == [{"type": "divider"}]
        assert body["unfurl_links"] is False

    async def test_post_text_has_no_blocks(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        client = SlackClient("xoxb-test", transport=recorder.transport)

        await client.post_text("UPMM", "*Deal Outcome*")

        assert "blocks" not in json.loads(recorder.requests[0].content)

    async def test_ok_false_is_an_error(self):
        recorder = Recorder(httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))
        client = SlackClient("xoxb-test", transport=recorder.transport)

        result = await client.post_message("U404", "hello")

        assert result.ok is False
        assert result.error == "channel_not_found"

    async def test_http_error_without_json(self):
        recorder = Recorder(httpx.Response(502, text="Bad Gateway"))
        client = SlackClient("xoxb-test", transport=recorder.transport)

        result = await client.post_message("U1", "hello")

        assert result.ok is False
        assert result.error == "http_502"

    async def test_network_failure_does_not_raise(self):
        recorder = Recorder(httpx.ConnectError("connection refused"))
        client = SlackClient("xoxb-test", transport=recorder.transport)

        result = await client.post_message("U1", "hello")

        assert result.ok is False
        assert "connection refused" in result.error

    async def test_lookup_user_by_email(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True, "user": {"id": "U9", "real_name": "Sam"}}))
        client = SlackClient("xoxb-test", transport=recorder.transport)

        result = await client.lookup_user_by_email("sam@example.com")

        assert result.data["user"]["id"] == "U9"
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/users.lookupByEmail"
        assert request.url.params["email"] == "sam@example.com"


# ── Telegram ─────────────────────────────────────────────────────────────────


class TestTelegramClient:
    async def test_send_message_with_keyboard(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True, "result": {"message_id": 5}}))
        client = TelegramClient("123ABC", transport=recorder.transport)
        keyboard = {"inline_keyboard": [[{"text": "👍", "callback_data": "helpful:del-1"}]]}

        result = await client.send_message("555", "<b>hi</b>", reply_markup=keyboard)

        assert result.ok is True
        request = recorder.requests[0]
        assert str(request.url) == "https://api.telegram.org/bot123ABC/sendMessage"
        body = json.loads(request.content)
        assert body == {"chat_id": "555", "text": "<b>hi</b>", "parse_mode": "HTML", "reply_markup": keyboard}

    async def test_send_text_has_no_parse_mode(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        client = TelegramClient("123ABC", transport=recorder.transport)

        await client.send_text("555", "*bold*")

        assert "parse_mode" not in json.loads(recorder.requests[0].content)

    async def test_error_uses_description(self):
        recorder = Recorder(httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"}))
        client = TelegramClient("123ABC", transport=recorder.transport)

        result = await client.send_message("0", "hi")

        assert result.ok is False
        assert result.error == "Bad Request: chat not found"

    async def test_callback_acknowledgement_calls(self):
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        client = TelegramClient("123ABC", transport=recorder.transport)

        await client.answer_callback_query("cb1", "✓ Marked as helpful")
        await client.edit_message_reply_markup("555", 10)

        first, second = recorder.requests
        assert first.url.path.endswith("/answerCallbackQuery")
        assert json.loads(first.content) == {"callback_query_id": "cb1", "text": "✓ Marked as helpful"}
        assert second.url.path.endswith("/editMessageReplyMarkup")
        assert json.loads(second.content)["reply_markup"] == {"inline_keyboard": []}


# ── LLM ──────────────────────────────────────────────────────────────────────


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        model="anthropic/claude-sonnet-4-20250514",
    )


class TestLLMService:
    def test_unavailable_without_keys(self, settings):
        assert LLMService(settings).available is False

    async def test_generate_without_keys_raises(self, settings):
        with pytest.raises(GenerationError, match="No LLM API keys"):
            await LLMService(settings).generate("prompt")

    async def test_generate_returns_content(self, settings):
        service = LLMService(settings)
        service.router = MagicMock()
        service.router.acompletion = AsyncMock(return_value=_completion("the package"))

        assert await service.generate("prompt") == "the package"
        kwargs = service.router.acompletion.call_args.kwargs
        assert kwargs["model"] == MODEL_GROUP
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["max_tokens"] == settings.LLM_MAX_TOKENS

    async def test_empty_response_raises(self, settings):
        service = LLMService(settings)
        service.router = MagicMock()
        service.router.acompletion = AsyncMock(return_value=_completion(""))

        with pytest.raises(GenerationError, match="empty response"):
            await service.generate("prompt")

    async def test_provider_error_raises(self, settings):
        service = LLMService(settings)
        service.router = MagicMock()
        service.router.acompletion = AsyncMock(side_effect=RuntimeError("rate limited"))

        with pytest.raises(GenerationError, match="rate limited"):
            await service.generate("prompt")

    async def test_provider_error_is_not_retried(self, settings):
        service = LLMService(settings)
        service.router = MagicMock()
        service.router.acompletion = AsyncMock(side_effect=RuntimeError("overloaded"))

        with pytest.raises(GenerationError):
            await service.generate("prompt")

        service.router.acompletion.assert_awaited_once()

    def test_router_is_built_without_retries(self, settings_factory):
        service = LLMService(settings_factory(ANTHROPIC_API_KEY="sk-ant-test"))

        assert service.available is True
        assert service.router.num_retries == 0


# ── Remote sync ──────────────────────────────────────────────────────────────


class TestRemoteSync:
    async def test_push_success(self):
        recorder = Recorder(httpx.Response(200, json={"synced": True}))
        sync = RemoteSync("https://jit.example.com/", "s3cret", transport=recorder.transport)

        assert await sync.push(KB_ENDPOINT, {"case_studies": []}) is True

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert str(request.url) == "https://jit.example.com/api/kb"
        assert request.headers["Authorization"] == "Bearer s3cret"
        assert sync.base_url == "https://jit.example.com"

    async def test_rejected_push_returns_false_without_retry(self):
        recorder = Recorder(httpx.Response(403, json={"error": "Invalid sync secret"}))
        sync = RemoteSync("https://jit.example.com", "wrong", transport=recorder.transport)

        assert await sync.push(KB_ENDPOINT, {}) is False
        assert len(recorder.requests) == 1

    async def test_connect_error_is_retried(self):
        recorder = Recorder(httpx.ConnectError("refused"), httpx.Response(200, json={"synced": True}))
        sync = RemoteSync("https://jit.example.com", "s3cret", transport=recorder.transport)

        assert await sync.push(KB_ENDPOINT, {}) is True
        assert len(recorder.requests) == 2

    async def test_schedule_and_drain(self):
        recorder = Recorder(httpx.Response(200, json={"synced": True}))
        sync = RemoteSync("https://jit.example.com", "s3cret", transport=recorder.transport)

        task = sync.schedule(KB_ENDPOINT, {"a": 1})
        await sync.drain()

        assert task.done()
        assert task.result() is True
        assert len(recorder.requests) == 1
