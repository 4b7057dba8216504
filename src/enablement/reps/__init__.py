"""Rep directory -- maps CRM owner emails to Slack and Telegram identities."""

from src.enablement.reps.repository import RepRepository
from src.enablement.reps.schemas import RegisteredVia, RepDirectory, RepEntry

__all__ = ["RegisteredVia", "RepDirectory", "RepEntry", "RepRepository"]
