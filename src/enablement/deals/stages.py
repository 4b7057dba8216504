"""Deal stage classification.

Decides whether a stage change triggers enablement (rep needs content now),
outcome tracking (deal closed), or nothing. Matching is exact and
case-sensitive: "proposal sent" or "Negotiation " classify as skip.

Exports:
    classify_stage: Map a stage string to a StageType.
    filter_stage: Exact membership test against a custom stage list.
    extract_stage: Pull the raw stage string from a CRM payload without a
        full parse.
    ENABLEMENT_STAGES, OUTCOME_STAGES: The two trigger sets.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from src.enablement.deals.parse import unwrap_payload
from src.enablement.deals.schemas import StageType

ENABLEMENT_STAGES: tuple[str, ...] = ("Proposal Sent", "Negotiation")
OUTCOME_STAGES: tuple[str, ...] = ("Closed Won", "Closed Lost")

CLOSED_WON_STAGE = "Closed Won"


def classify_stage(stage: str) -> StageType:
    if stage in ENABLEMENT_STAGES:
        return StageType.enablement
    if stage in OUTCOME_STAGES:
        return StageType.outcome
    return StageType.skip


def filter_stage(stage: str, target_stages: Iterable[str]) -> bool:
    return stage in tuple(target_stages)


def extract_stage(raw: Any) -> str:
    """Return the deal stage from a raw CRM payload, or "" if absent.

    Checks vendor stage fields in the same priority order as the
    normalizer: HubSpot ``properties.dealstage``, Salesforce ``StageName``,
    Attio ``attributes.stage``, Pipedrive ``current.stage_name`` then
    ``current.stage_id``, Close ``status_label``, generic ``deal_stage``.
    A vendor object without a stage falls through to the next check.
    """
    data = unwrap_payload(raw)

    props = data.get("properties")
    if isinstance(props, Mapping) and props.get("dealstage"):
        return str(props["dealstage"])

    if data.get("StageName"):
        return str(data["StageName"])

    attrs = data.get("attributes")
    if isinstance(attrs, Mapping) and attrs.get("stage"):
        return str(attrs["stage"])

    current = data.get("current")
    if isinstance(current, Mapping):
        if current.get("stage_name"):
            return str(current["stage_name"])
        if current.get("stage_id"):
            return str(current["stage_id"])

    if data.get("status_label"):
        return str(data["status_label"])

    if data.get("deal_stage"):
        return str(data["deal_stage"])

    return ""
