"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.enablement.core.errors import ConfigurationError


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Channel(str, Enum):
    """Delivery channel for enablement packages and PMM notifications."""

    slack = "slack"
    telegram = "telegram"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Storage (knowledge-base.json, feedback-log.json, rep-directory.json)
    DATA_DIR: str = "./data"

    # LLM Providers -- template-based packages are used when no key is set
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LLM_TIMEOUT: int = 30
    LLM_MAX_TOKENS: int = 1500

    # Delivery channel
    CHANNEL: Channel = Channel.slack

    # Slack
    SLACK_BOT_TOKEN: str = ""
    PMM_SLACK_ID: str = ""  # PMM user id for outcome and field-signal alerts

    # Telegram
    TELEGRAM_BOT_TOKEN: str = ""
    PMM_TELEGRAM_CHAT_ID: str = ""  # Also the fallback recipient for reps without a chat id

    # Webhook server
    WEBHOOK_PORT: int = Field(default=3456, validation_alias=AliasChoices("PORT", "WEBHOOK_PORT"))
    HTTP_TIMEOUT: float = 10.0

    # Remote sync (curation host pushes KB and rep directory to the server)
    SYNC_SECRET: str = ""
    SYNC_URL: str = ""

    @property
    def data_path(self) -> Path:
        return Path(self.DATA_DIR)

    @property
    def kb_path(self) -> Path:
        return self.data_path / "knowledge-base.json"

    @property
    def feedback_log_path(self) -> Path:
        return self.data_path / "feedback-log.json"

    @property
    def repdirectory_path(self) -> Path:
        return self.data_path / "rep-directory.json"

    @property
    def sync_enabled(self) -> bool:
        """True when writes should be pushed to a remote server."""
        return bool(self.SYNC_URL and self.SYNC_SECRET)

    def validate_for_server(self) -> None:
        """Check that the selected channel has the credentials it needs.

        Raises:
            ConfigurationError: If the bot token for CHANNEL is missing.
        """
        if self.CHANNEL == Channel.slack and not self.SLACK_BOT_TOKEN:
            raise ConfigurationError("SLACK_BOT_TOKEN is required when CHANNEL=slack")
        if self.CHANNEL == Channel.telegram and not self.TELEGRAM_BOT_TOKEN:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is required when CHANNEL=telegram")


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
