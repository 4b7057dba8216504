"""Post-parse deal enrichment.

Re-applies defaults for fields that downstream matching relies on. The
normalizer already defaults these for webhook payloads; deals built by hand
(the curation preview) come through here with empty strings.
"""

from __future__ import annotations

from src.enablement.deals.schemas import DEFAULT_COMPETITOR, DEFAULT_INDUSTRY, DealContext


def enrich_deal_context(deal: DealContext) -> DealContext:
    """Return a copy with empty industry/competitor/deal_size defaulted."""
    return deal.model_copy(
        update={
            "industry": deal.industry or DEFAULT_INDUSTRY,
            "competitor": deal.competitor or DEFAULT_COMPETITOR,
            "deal_size": deal.deal_size or 0,
        }
    )
