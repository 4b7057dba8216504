"""Remote sync push for knowledge-base and rep-directory writes.

When the curation host runs locally and the webhook server is deployed
elsewhere, every write is pushed to the server's ``PUT /api/kb`` or
``PUT /api/rep-directory`` endpoint with a shared bearer secret.

Pushes are fire-and-forget: ``schedule()`` spawns a task and returns at once,
and ``push()`` logs every failure instead of raising, so a broken remote
never fails a local write.

Exports:
    RemoteSync: Sync client configured with a base URL and secret.
    KB_ENDPOINT, REP_DIRECTORY_ENDPOINT: Remote paths for the two records.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

KB_ENDPOINT = "/api/kb"
REP_DIRECTORY_ENDPOINT = "/api/rep-directory"

_sync_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


class RemoteSync:
    """Pushes whole records to a remote enablement server.

    Args:
        base_url: Remote server root, e.g. ``https://jit.example.com``.
        secret: Shared SYNC_SECRET sent as a bearer token.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests inject a mock).
    """

    def __init__(
        self,
        base_url: str,
        secret: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret = secret
        self._timeout = timeout
        self._transport = transport
        self._pending: set[asyncio.Task] = set()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self._secret}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    @_sync_retry
    async def _put(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        async with self._client() as client:
            return await client.put(f"{self._base_url}{endpoint}", json=payload)

    async def push(self, endpoint: str, payload: dict[str, Any]) -> bool:
        """PUT ``payload`` to ``endpoint``. Returns True on a 2xx response."""
        try:
            response = await self._put(endpoint, payload)
        except httpx.HTTPError as exc:
            logger.warning("sync.push_failed", endpoint=endpoint, error=str(exc))
            return False

        if response.is_success:
            logger.info("sync.pushed", endpoint=endpoint, status_code=response.status_code)
            return True

        logger.warning(
            "sync.push_rejected",
            endpoint=endpoint,
            status_code=response.status_code,
            body=response.text[:200],
        )
        return False

    def schedule(self, endpoint: str, payload: dict[str, Any]) -> asyncio.Task:
        """Start a background push and return its task."""
        task = asyncio.create_task(self.push(endpoint, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight pushes (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
