"""Feedback analytics for the PMM.

Pure functions over a FeedbackLog: a performance summary for a look-back
window, the list of tracked outcomes, and recent field signals. Each returns
a pydantic model; the curation tools render them as text.

Timestamps are ISO-8601 UTC strings, so window filtering compares strings.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field

from src.enablement.feedback.correlate import find_delivery
from src.enablement.feedback.schemas import (
    CLOSED_LOST,
    CLOSED_WON,
    HELPFUL,
    NOT_HELPFUL,
    DeliveryEntry,
    FeedbackEntry,
    FeedbackLog,
    FeedbackSource,
)

TOP_CONTENT_LIMIT = 5


class OutcomeFilter(str, Enum):
    all = "all"
    won = "won"
    lost = "lost"


class ContentPerformance(BaseModel):
    case_study_id: str
    surfaced: int = 0
    helpful: int = 0
    not_helpful: int = 0


class FeedbackSummary(BaseModel):
    days: int
    deliveries: int = 0
    reactions: int = 0
    helpful: int = 0
    not_helpful: int = 0
    helpful_rate: int = 0  # percent, rounded
    field_signals: int = 0
    outcomes: int = 0
    closed_won: int = 0
    closed_lost: int = 0
    top_content: list[ContentPerformance] = Field(default_factory=list)
    needs_review: list[ContentPerformance] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.deliveries == 0 and self.reactions == 0 and self.field_signals == 0 and self.outcomes == 0


class OutcomeRecord(BaseModel):
    feedback: FeedbackEntry
    delivery: DeliveryEntry | None = None

    @property
    def won(self) -> bool:
        return self.feedback.value == CLOSED_WON


class FieldSignalRecord(BaseModel):
    feedback: FeedbackEntry
    delivery: DeliveryEntry | None = None


def cutoff_iso(days: int, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days)).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def summarize_feedback(log: FeedbackLog, days: int = 30, now: datetime | None = None) -> FeedbackSummary:
    """Delivery, reaction, signal and outcome counts for the last ``days``."""
    cutoff = cutoff_iso(days, now)
    deliveries = [d for d in log.deliveries if d.timestamp >= cutoff]
    feedback = [f for f in log.feedback if f.timestamp >= cutoff]

    reactions = [f for f in feedback if f.source == FeedbackSource.reaction]
    helpful = [f for f in reactions if f.value == HELPFUL]
    not_helpful = [f for f in reactions if f.value == NOT_HELPFUL]
    outcomes = [f for f in feedback if f.source == FeedbackSource.outcome]

    performance: dict[str, ContentPerformance] = defaultdict(lambda: ContentPerformance(case_study_id=""))
    for delivery in deliveries:
        for cs_id in delivery.case_studies_surfaced:
            entry = performance[cs_id]
            entry.case_study_id = cs_id
            entry.surfaced += 1

    for reaction in reactions:
        delivery = find_delivery(reaction, deliveries)
        if delivery is None:
            continue
        for cs_id in delivery.case_studies_surfaced:
            if cs_id not in performance:
                continue
            if reaction.value == HELPFUL:
                performance[cs_id].helpful += 1
            elif reaction.value == NOT_HELPFUL:
                performance[cs_id].not_helpful += 1

    ranked = sorted(performance.values(), key=lambda p: p.surfaced, reverse=True)

    return FeedbackSummary(
        days=days,
        deliveries=len(deliveries),
        reactions=len(reactions),
        helpful=len(helpful),
        not_helpful=len(not_helpful),
        helpful_rate=round(len(helpful) / len(reactions) * 100) if reactions else 0,
        field_signals=sum(1 for f in feedback if f.is_field_signal),
        outcomes=len(outcomes),
        closed_won=sum(1 for f in outcomes if f.value == CLOSED_WON),
        closed_lost=sum(1 for f in outcomes if f.value == CLOSED_LOST),
        top_content=ranked[:TOP_CONTENT_LIMIT],
        needs_review=[p for p in ranked if p.not_helpful > 0],
    )


def list_outcomes(log: FeedbackLog, outcome: OutcomeFilter = OutcomeFilter.all) -> list[OutcomeRecord]:
    records = [f for f in log.feedback if f.source == FeedbackSource.outcome]
    if outcome == OutcomeFilter.won:
        records = [f for f in records if f.value == CLOSED_WON]
    elif outcome == OutcomeFilter.lost:
        records = [f for f in records if f.value == CLOSED_LOST]
    return [OutcomeRecord(feedback=f, delivery=find_delivery(f, log.deliveries)) for f in records]


def list_field_signals(log: FeedbackLog, days: int = 30, now: datetime | None = None) -> list[FieldSignalRecord]:
    cutoff = cutoff_iso(days, now)
    return [
        FieldSignalRecord(feedback=f, delivery=find_delivery(f, log.deliveries))
        for f in log.feedback
        if f.is_field_signal and f.timestamp >= cutoff
    ]
