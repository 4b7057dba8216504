"""Delivery and feedback log persistence.

Both lists live in ``feedback-log.json`` and are append-only. Appends hold
the store's per-key lock so concurrent webhook continuations never drop
entries.
"""

from __future__ import annotations

import structlog

from src.enablement.core.ids import utc_now_iso
from src.enablement.core.store import JsonFileStore
from src.enablement.feedback.schemas import DeliveryEntry, FeedbackEntry, FeedbackLog

logger = structlog.get_logger(__name__)

FEEDBACK_LOG_KEY = "feedback-log"


def _empty_log() -> dict:
    return FeedbackLog().model_dump(by_alias=True)


class FeedbackRepository:
    """Async access to the delivery/feedback log."""

    def __init__(self, store: JsonFileStore) -> None:
        self._store = store

    async def get(self) -> FeedbackLog:
        data = await self._store.read(FEEDBACK_LOG_KEY, _empty_log)
        return FeedbackLog.model_validate(data)

    async def _append(self, *, delivery: DeliveryEntry | None = None, feedback: FeedbackEntry | None = None) -> None:
        async with self._store.lock(FEEDBACK_LOG_KEY):
            log = await self.get()
            if delivery is not None:
                log.deliveries.append(delivery)
            if feedback is not None:
                log.feedback.append(feedback)
            log.meta.total_deliveries = len(log.deliveries)
            log.meta.total_feedback = len(log.feedback)
            log.meta.last_updated = utc_now_iso()
            await self._store.write(FEEDBACK_LOG_KEY, log.model_dump(by_alias=True, mode="json"))

    async def append_delivery(self, entry: DeliveryEntry) -> None:
        await self._append(delivery=entry)
        logger.info("feedback_log.delivery_appended", delivery_id=entry.delivery_id, deal_name=entry.deal_name)

    async def append_feedback(self, entry: FeedbackEntry) -> None:
        await self._append(feedback=entry)
        logger.info(
            "feedback_log.feedback_appended",
            feedback_id=entry.id,
            source=entry.source.value,
            delivery_id=entry.delivery_id,
        )
