"""Pydantic schemas for the delivery and feedback log."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.enablement.core.ids import utc_now_iso

FEEDBACK_LOG_VERSION = "1.0"


class FeedbackSource(str, Enum):
    reaction = "reaction"
    reply = "reply"
    outcome = "outcome"
    call_intel = "call_intel"


FIELD_SIGNAL_SOURCES: frozenset[FeedbackSource] = frozenset({FeedbackSource.reply, FeedbackSource.call_intel})

# Feedback values
HELPFUL = "helpful"
NOT_HELPFUL = "not_helpful"
FIELD_SIGNAL = "field_signal"
CLOSED_WON = "closed_won"
CLOSED_LOST = "closed_lost"


class DeliveryEntry(BaseModel):
    """One sent enablement package. Written once, never updated."""

    delivery_id: str
    deal_name: str
    deal_stage: str
    industry: str
    competitor: str
    rep_id: str
    case_studies_surfaced: list[str] = Field(default_factory=list)
    competitors_surfaced: list[str] = Field(default_factory=list)
    channel: str
    timestamp: str = Field(default_factory=utc_now_iso)


class FeedbackEntry(BaseModel):
    """One reaction, reply, call summary or deal outcome."""

    id: str
    delivery_id: str = ""
    source: FeedbackSource
    value: str
    raw_text: str | None = None
    rep_id: str = ""
    deal_name: str = ""
    timestamp: str = Field(default_factory=utc_now_iso)

    @property
    def is_field_signal(self) -> bool:
        return self.source in FIELD_SIGNAL_SOURCES


class VerificationChallenge(BaseModel):
    """Slack URL verification handshake; echoed back, never logged."""

    challenge: str


class FeedbackLogMeta(BaseModel):
    last_updated: str = ""
    version: str = FEEDBACK_LOG_VERSION
    total_deliveries: int = 0
    total_feedback: int = 0


class FeedbackLog(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deliveries: list[DeliveryEntry] = Field(default_factory=list)
    feedback: list[FeedbackEntry] = Field(default_factory=list)
    meta: FeedbackLogMeta = Field(default_factory=FeedbackLogMeta, alias="_meta")


class NotificationType(str, Enum):
    outcome = "outcome"
    field_signal = "field_signal"


class PmmNotification(BaseModel):
    text: str
    deal_name: str
    type: NotificationType
