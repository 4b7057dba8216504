"""Deterministic knowledge-base matching for a deal.

Scores entries against the deal's industry, stage and competitor. All
comparisons are case-insensitive. No LLM is involved; the same deal and
knowledge base always select the same entries.

Case study score:
    +10  industry equals the deal's industry
    +5   deal stage is in relevant_stages
    +3   industries overlap as substrings (only while score < 10)
    Highest score wins, first in list order on ties. A zero score still
    wins when nothing better exists.

Objection score:
    +10  competitor equals the deal's competitor (non-empty)
    +5   deal stage is in relevant_stages
    +1   no competitor and nothing else matched
    Entries scoring 0 are dropped; the top 3 by score are kept, stable on
    ties.

Competitor positioning is an exact name match only.

Exports:
    score_case_study, score_objection: Per-entry scoring functions.
    find_best_case_study: Select the case study for a deal.
    find_competitor_positioning: Exact competitor lookup.
    find_relevant_objections: Up to MAX_OBJECTIONS ranked objections.
    find_stage_guidance: Methodology guidance for a stage.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.enablement.deals.schemas import DealContext
from src.enablement.knowledge.schemas import (
    CaseStudy,
    CompetitorPositioning,
    Methodology,
    ObjectionEntry,
)

MAX_OBJECTIONS = 3


def _stage_matches(stage: str, relevant_stages: Sequence[str]) -> bool:
    target = stage.lower()
    return any(s.lower() == target for s in relevant_stages)


# ── Case studies ───────────────────────────────────────────────────────────


def score_case_study(case_study: CaseStudy, industry: str, stage: str) -> int:
    deal_industry = industry.lower()
    entry_industry = case_study.industry.lower()

    score = 0
    if entry_industry == deal_industry:
        score += 10
    if _stage_matches(stage, case_study.relevant_stages):
        score += 5
    if score < 10 and (deal_industry in entry_industry or entry_industry in deal_industry):
        score += 3
    return score


def find_best_case_study(deal: DealContext, case_studies: Sequence[CaseStudy]) -> CaseStudy | None:
    """Return the highest-scoring case study for ``deal``.

    Callers run this only after the content gate has passed, which
    guarantees at least one case study. Given an empty list it returns None.
    """
    best: CaseStudy | None = None
    best_score = -1
    for case_study in case_studies:
        score = score_case_study(case_study, deal.industry, deal.deal_stage)
        if score > best_score:
            best, best_score = case_study, score
    return best


# ── Competitor positioning ─────────────────────────────────────────────────


def find_competitor_positioning(
    competitor: str,
    positioning: Sequence[CompetitorPositioning],
) -> CompetitorPositioning | None:
    if not competitor:
        return None
    target = competitor.lower()
    return next((cp for cp in positioning if cp.competitor.lower() == target), None)


# ── Objections ─────────────────────────────────────────────────────────────


def score_objection(objection: ObjectionEntry, competitor: str, stage: str) -> int:
    score = 0
    if objection.competitor and objection.competitor.lower() == competitor.lower():
        score += 10
    if _stage_matches(stage, objection.relevant_stages):
        score += 5
    if not objection.competitor and score == 0:
        score += 1
    return score


def find_relevant_objections(
    deal: DealContext,
    objections: Sequence[ObjectionEntry],
    limit: int = MAX_OBJECTIONS,
) -> list[ObjectionEntry]:
    scored = [(score_objection(ob, deal.competitor, deal.deal_stage), ob) for ob in objections]
    eligible = [pair for pair in scored if pair[0] > 0]
    # sorted() is stable, so equal scores keep library order
    eligible = sorted(eligible, key=lambda pair: pair[0], reverse=True)
    return [ob for _, ob in eligible[:limit]]


# ── Methodology ────────────────────────────────────────────────────────────


def find_stage_guidance(methodology: Methodology, stage: str) -> tuple[str, str] | None:
    """Return ``(stage_key, guidance)`` for a case-insensitive stage match."""
    target = stage.lower()
    for key, guidance in methodology.stage_guidance.items():
        if key.lower() == target:
            return key, guidance
    return None
