"""Async client for the Slack Web API.

Provides SlackClient for the three calls the engine makes: posting Block Kit
messages (chat.postMessage), posting plain text notifications, and resolving
a user id from an email (users.lookupByEmail).

Slack reports most failures as HTTP 200 with ``{"ok": false, "error": ...}``,
so every method returns a PlatformResponse instead of raising. Sends are not
retried: a duplicate enablement DM is worse than a missed one.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

SLACK_API_BASE = "https://slack.com/api"


class PlatformResponse(BaseModel):
    """Normalized result of a messaging platform call."""

    ok: bool
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class SlackClient:
    """Slack Web API client authenticated with a bot token.

    Args:
        bot_token: Slack bot token (``xoxb-...``).
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

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=SLACK_API_BASE,
            headers={"Authorization": f"Bearer {self._bot_token}"},
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _call(
        self,
        method: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> PlatformResponse:
        try:
            async with self._client() as client:
                if json is not None:
                    response = await client.post(
                        f"/{method}",
                        json=json,
                        headers={"Content-Type": "application/json; charset=utf-8"},
                    )
                else:
                    response = await client.get(f"/{method}", params=params)
        except httpx.HTTPError as exc:
            logger.error("slack.request_failed", method=method, error=str(exc))
            return PlatformResponse(ok=False, error=str(exc))

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("ok"):
            error = body.get("error") or f"http_{response.status_code}"
            logger.warning("slack.api_error", method=method, status_code=response.status_code, error=error)
            return PlatformResponse(ok=False, error=error, data=body)

        return PlatformResponse(ok=True, data=body)

    async def post_message(
        self,
        channel: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> PlatformResponse:
        """Post a message (DM when ``channel`` is a user id)."""
        payload: dict[str, Any] = {
            "channel": channel,
            "text": text,
            "unfurl_links": False,
            "unfurl_media": False,
        }
        if blocks is not None:
            payload["blocks"] = blocks
        return await self._call("chat.postMessage", json=payload)

    async def post_text(self, channel: str, text: str) -> PlatformResponse:
        """Post a plain mrkdwn message (PMM notifications)."""
        return await self.post_message(channel, text)

    async def lookup_user_by_email(self, email: str) -> PlatformResponse:
        """Resolve a Slack user from an email address.

        On success ``data["user"]`` holds the user object with ``id`` and
        ``real_name``.
        """
        return await self._call("users.lookupByEmail", params={"email": email})
