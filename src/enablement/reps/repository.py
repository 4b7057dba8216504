"""Rep directory persistence.

Reads and writes ``rep-directory.json`` through the JsonFileStore. Every
write recomputes ``_meta`` and, when remote sync is configured, pushes the
directory to the deployed server in the background.
"""

from __future__ import annotations

import structlog

from src.enablement.core.ids import utc_now_iso
from src.enablement.core.store import JsonFileStore
from src.enablement.core.sync import REP_DIRECTORY_ENDPOINT, RemoteSync
from src.enablement.reps.schemas import RepDirectory, RepEntry

logger = structlog.get_logger(__name__)

REP_DIRECTORY_KEY = "rep-directory"


def _empty_directory() -> dict:
    return RepDirectory().model_dump(by_alias=True)


class RepRepository:
    """Async access to the rep directory.

    Args:
        store: Backing JSON file store.
        sync: Optional remote sync client; writes are pushed when set.
    """

    def __init__(self, store: JsonFileStore, sync: RemoteSync | None = None) -> None:
        self._store = store
        self._sync = sync

    async def get(self) -> RepDirectory:
        data = await self._store.read(REP_DIRECTORY_KEY, _empty_directory)
        return RepDirectory.model_validate(data)

    async def save(self, directory: RepDirectory, *, push: bool = True) -> RepDirectory:
        async with self._store.lock(REP_DIRECTORY_KEY):
            return await self._save_unlocked(directory, push=push)

    async def _save_unlocked(self, directory: RepDirectory, *, push: bool = True) -> RepDirectory:
        directory.meta.total_reps = len(directory.reps)
        directory.meta.last_updated = utc_now_iso()
        payload = directory.model_dump(by_alias=True, mode="json")
        await self._store.write(REP_DIRECTORY_KEY, payload)
        if push and self._sync is not None:
            self._sync.schedule(REP_DIRECTORY_ENDPOINT, payload)
        return directory

    async def find_by_email(self, email: str) -> RepEntry | None:
        return (await self.get()).find_by_email(email)

    async def find_by_telegram_chat_id(self, chat_id: str) -> RepEntry | None:
        return (await self.get()).find_by_telegram_chat_id(chat_id)

    async def upsert(self, rep: RepEntry) -> RepEntry:
        """Insert or merge a rep by email.

        Non-empty fields on ``rep`` overwrite the stored entry; blank
        ``slack_id``, ``telegram_chat_id`` and ``name`` keep the old values.
        """
        async with self._store.lock(REP_DIRECTORY_KEY):
            directory = await self.get()
            existing = directory.find_by_email(rep.email)
            if existing is None:
                directory.reps.append(rep)
                merged = rep
            else:
                merged = existing.model_copy(
                    update={
                        "email": rep.email,
                        "name": rep.name or existing.name,
                        "slack_id": rep.slack_id or existing.slack_id,
                        "telegram_chat_id": rep.telegram_chat_id or existing.telegram_chat_id,
                        "registered_at": rep.registered_at,
                        "registered_via": rep.registered_via,
                    }
                )
                directory.reps[directory.reps.index(existing)] = merged
            await self._save_unlocked(directory)
        logger.info("reps.upserted", email=merged.email, created=existing is None)
        return merged

    async def remove(self, email: str) -> bool:
        """Remove a rep by email (case-insensitive). Returns False if absent."""
        async with self._store.lock(REP_DIRECTORY_KEY):
            directory = await self.get()
            existing = directory.find_by_email(email)
            if existing is None:
                return False
            directory.reps.remove(existing)
            await self._save_unlocked(directory)
        logger.info("reps.removed", email=email)
        return True

    async def replace(self, directory: RepDirectory) -> RepDirectory:
        """Overwrite the whole directory (sync endpoint). Never re-pushed."""
        return await self.save(directory, push=False)
