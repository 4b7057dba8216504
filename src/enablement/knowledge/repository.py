"""Knowledge base persistence.

The knowledge base is read whole before every delivery decision and
rewritten whole on every mutation. Writes recompute ``_meta`` and push to
the remote server when sync is configured.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

import structlog

from src.enablement.core.ids import utc_now_iso
from src.enablement.core.store import JsonFileStore
from src.enablement.core.sync import KB_ENDPOINT, RemoteSync
from src.enablement.knowledge.schemas import KnowledgeBase

logger = structlog.get_logger(__name__)

KB_KEY = "knowledge-base"

T = TypeVar("T")


def _empty_kb() -> dict:
    return KnowledgeBase().model_dump(by_alias=True)


class KnowledgeRepository:
    """Async access to the knowledge base.

    Args:
        store: Backing JSON file store.
        sync: Optional remote sync client; writes are pushed when set.
    """

    def __init__(self, store: JsonFileStore, sync: RemoteSync | None = None) -> None:
        self._store = store
        self._sync = sync

    @property
    def path(self) -> str:
        return str(self._store.path_for(KB_KEY))

    async def get(self) -> KnowledgeBase:
        data = await self._store.read(KB_KEY, _empty_kb)
        return KnowledgeBase.model_validate(data)

    async def _write(self, kb: KnowledgeBase, *, push: bool) -> KnowledgeBase:
        kb.refresh_meta(utc_now_iso())
        payload = kb.model_dump(by_alias=True, mode="json")
        await self._store.write(KB_KEY, payload)
        logger.info(
            "knowledge.saved",
            entry_count=kb.meta.entry_count,
            configured=kb.meta.configured,
        )
        if push and self._sync is not None:
            self._sync.schedule(KB_ENDPOINT, payload)
        return kb

    async def save(self, kb: KnowledgeBase, *, push: bool = True) -> KnowledgeBase:
        async with self._store.lock(KB_KEY):
            return await self._write(kb, push=push)

    async def update(self, mutate: Callable[[KnowledgeBase], T]) -> tuple[KnowledgeBase, T]:
        """Read, apply ``mutate`` in place, and write under the KB lock.

        Returns the knowledge base and whatever ``mutate`` returned. A falsy
        result means nothing changed and the write is skipped.
        """
        async with self._store.lock(KB_KEY):
            kb = await self.get()
            result = mutate(kb)
            if result:
                kb = await self._write(kb, push=True)
        return kb, result

    async def replace(self, kb: KnowledgeBase) -> KnowledgeBase:
        """Overwrite the whole knowledge base (sync endpoint). Never re-pushed."""
        return await self.save(kb, push=False)
