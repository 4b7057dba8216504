"""Delivery log entry construction."""

from __future__ import annotations

from collections.abc import Sequence

from src.enablement.deals.schemas import DealContext
from src.enablement.feedback.schemas import DeliveryEntry


def build_delivery_entry(
    deal: DealContext,
    delivery_id: str,
    channel: str,
    case_studies_surfaced: Sequence[str],
    competitors_surfaced: Sequence[str],
) -> DeliveryEntry:
    return DeliveryEntry(
        delivery_id=delivery_id,
        deal_name=deal.deal_name,
        deal_stage=deal.deal_stage,
        industry=deal.industry,
        competitor=deal.competitor,
        rep_id=deal.rep_messaging_id or deal.rep_email or "unknown",
        case_studies_surfaced=list(case_studies_surfaced),
        competitors_surfaced=list(competitors_surfaced),
        channel=channel,
    )
