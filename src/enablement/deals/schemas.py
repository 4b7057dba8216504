"""Pydantic schemas for the canonical deal record and pipeline results.

DealContext is produced once per CRM webhook by the payload normalizer and
then refined through the pipeline with ``model_copy(update=...)``; stages
never mutate a deal in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# ── Defaults ───────────────────────────────────────────────────────────────

DEFAULT_DEAL_NAME = "Unknown Deal"
DEFAULT_COMPANY_NAME = "Unknown Company"
DEFAULT_INDUSTRY = "Technology"
DEFAULT_COMPETITOR = "Not specified"

# Competitor values that mean "no competitor on this deal"
UNSPECIFIED_COMPETITORS: frozenset[str] = frozenset({"Unknown", "None", "Not specified"})


# ── Enums ──────────────────────────────────────────────────────────────────


class CrmType(str, Enum):
    hubspot = "hubspot"
    salesforce = "salesforce"
    attio = "attio"
    pipedrive = "pipedrive"
    close = "close"
    generic = "generic"


class ResolutionMethod(str, Enum):
    """Which step of the identity chain produced ``rep_messaging_id``."""

    crm_field = "crm_field"
    rep_directory = "rep_directory"
    slack_api_lookup = "slack_api_lookup"
    email_fallback = "email_fallback"
    rep_directory_telegram = "rep_directory_telegram"
    pmm_fallback = "pmm_fallback"
    manual = "manual"
    unresolved = "unresolved"


class StageType(str, Enum):
    enablement = "enablement"
    outcome = "outcome"
    skip = "skip"


# ── Models ─────────────────────────────────────────────────────────────────


class DealContext(BaseModel):
    """Canonical deal record normalized from any supported CRM payload."""

    deal_name: str = DEFAULT_DEAL_NAME
    deal_stage: str = ""
    company_name: str = DEFAULT_COMPANY_NAME
    deal_notes: str = ""
    product_interest: str = ""
    industry: str = DEFAULT_INDUSTRY
    competitor: str = DEFAULT_COMPETITOR
    deal_size: float = Field(default=0, ge=0)
    rep_email: str = ""
    rep_messaging_id: str = ""
    identity_resolved: bool = False
    resolution_method: ResolutionMethod = ResolutionMethod.unresolved
    source_crm: CrmType = CrmType.generic
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_competitor(self) -> bool:
        return bool(self.competitor) and self.competitor not in UNSPECIFIED_COMPETITORS


class PipelineResult(BaseModel):
    """Outcome of one enablement pipeline run."""

    success: bool
    deal_name: str
    deal_stage: str
    channel: str
    delivery_id: str = ""
    resolution_method: ResolutionMethod = ResolutionMethod.unresolved
    error: str | None = None
