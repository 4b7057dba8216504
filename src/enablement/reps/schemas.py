"""Pydantic schemas for the rep directory."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.enablement.core.ids import utc_now_iso

DIRECTORY_VERSION = "1.0"


class RegisteredVia(str, Enum):
    manual = "manual"
    bot_start = "bot_start"
    slack_api_lookup = "slack_api_lookup"


class RepEntry(BaseModel):
    """One sales rep, keyed by email (case-insensitive)."""

    email: str
    name: str = ""
    slack_id: str = ""
    telegram_chat_id: str = ""
    registered_at: str = Field(default_factory=utc_now_iso)
    registered_via: RegisteredVia = RegisteredVia.manual


class RepDirectoryMeta(BaseModel):
    last_updated: str = ""
    version: str = DIRECTORY_VERSION
    total_reps: int = 0


class RepDirectory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reps: list[RepEntry] = Field(default_factory=list)
    meta: RepDirectoryMeta = Field(default_factory=RepDirectoryMeta, alias="_meta")

    def find_by_email(self, email: str) -> RepEntry | None:
        if not email:
            return None
        target = email.lower()
        return next((r for r in self.reps if r.email.lower() == target), None)

    def find_by_telegram_chat_id(self, chat_id: str) -> RepEntry | None:
        if not chat_id:
            return None
        return next((r for r in self.reps if r.telegram_chat_id == chat_id), None)
