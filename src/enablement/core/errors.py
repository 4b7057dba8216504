"""Domain exceptions for the enablement engine.

Exports:
    EnablementError: Base class for all domain errors.
    ConfigurationError: Missing or inconsistent settings at startup.
    StoreError: A data file could not be read or written.
    GenerationError: The text-generation service failed.
    DeliveryError: A messaging platform rejected or failed a send.
"""

from __future__ import annotations


class EnablementError(Exception):
    """Base class for enablement engine errors."""


class ConfigurationError(EnablementError):
    """Raised when required configuration is missing."""


class StoreError(EnablementError):
    """Raised when a data file cannot be persisted."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")


class GenerationError(EnablementError):
    """Raised when the text-generation service returns an error or no content."""


class DeliveryError(EnablementError):
    """Raised when a messaging platform send fails."""

    def __init__(self, platform: str, endpoint: str, description: str) -> None:
        self.platform = platform
        self.endpoint = endpoint
        self.description = description
        super().__init__(f"{platform} {endpoint} failed: {description}")
