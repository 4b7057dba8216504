"""Template-based enablement packages, assembled without an LLM.

Used whenever no LLM key is configured (and by the curation preview). The
package is built only from knowledge-base entries selected by the matcher,
so every claim in it traces to curated content.

Layout::

    DEAL CONTEXT header
    ---
    TOP OBJECTION RESPONSES     (when any objection scores > 0)
    RELEVANT CASE STUDY
    COMPETITOR POSITIONING      (omitted for an unspecified competitor)
    METHODOLOGY                 (when configured)

Sections are built in that body order and joined with blank lines; the
header and separator always lead.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from src.enablement.deals.schemas import DealContext
from src.enablement.knowledge.matcher import (
    find_best_case_study,
    find_competitor_positioning,
    find_relevant_objections,
    find_stage_guidance,
)
from src.enablement.knowledge.schemas import (
    CaseStudy,
    CompetitorPositioning,
    KnowledgeBase,
    Methodology,
    ObjectionEntry,
    ResourceLink,
)

SECTION_SEPARATOR = "---"

NO_CASE_STUDY_TEXT = (
    "RELEVANT CASE STUDY\n"
    "No matching case studies for this deal's industry or stage. "
    "Add one to the knowledge base to improve future packages."
)


class TemplatePackage(BaseModel):
    """Rendered package plus the knowledge entries it surfaced."""

    content: str
    case_studies_surfaced: list[str] = Field(default_factory=list)
    competitors_surfaced: list[str] = Field(default_factory=list)


def format_resources(resources: Sequence[ResourceLink]) -> str:
    return " | ".join(f"{r.label}: {r.url}" for r in resources)


def format_size(amount: float) -> str:
    """Dollar amount with thousands separators, no trailing .0."""
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}".rstrip("0").rstrip(".")


# ── Section formatters ─────────────────────────────────────────────────────


def format_deal_header(deal: DealContext) -> str:
    lines = [
        "DEAL CONTEXT",
        f"Company: {deal.company_name} | Industry: {deal.industry}",
        f"Stage: {deal.deal_stage} | Size: ${format_size(deal.deal_size)}",
    ]
    if deal.has_competitor:
        lines.append(f"Competitor: {deal.competitor}")
    return "\n".join(lines)


def format_objection_section(objections: Sequence[ObjectionEntry]) -> str:
    lines = ["TOP OBJECTION RESPONSES"]
    for ob in objections:
        tag = f" [vs. {ob.competitor}]" if ob.competitor else ""
        lines.append(f'\nObjection{tag}: "{ob.objection}"')
        lines.append(f"Response: {ob.response}")
    return "\n".join(lines)


def format_case_study_section(case_study: CaseStudy, deal: DealContext) -> str:
    if case_study.industry.lower() == deal.industry.lower():
        relevance = f"Same industry ({case_study.industry})"
    else:
        relevance = f"Closest match from {case_study.industry}"

    lines = [
        "RELEVANT CASE STUDY",
        f"{case_study.company} ({case_study.industry}, {case_study.segment})",
        f"Challenge: {case_study.challenge}",
        f"Result: {case_study.result}",
        f"Key Metric: {case_study.metric}",
        f"Why now: {relevance}, relevant at {', '.join(case_study.relevant_stages)} stages.",
    ]
    if case_study.resources:
        lines.append(f"Resources: {format_resources(case_study.resources)}")
    return "\n".join(lines)


def format_competitor_section(positioning: CompetitorPositioning) -> str:
    lines = [
        "COMPETITOR POSITIONING",
        f"Against {positioning.competitor} ({positioning.category}):",
        positioning.differentiator,
    ]
    if positioning.supporting_evidence:
        lines.append(f"Evidence: {positioning.supporting_evidence}")
    if positioning.resources:
        lines.append(f"Resources: {format_resources(positioning.resources)}")
    return "\n".join(lines)


def format_missing_competitor_section(competitor: str) -> str:
    return (
        "COMPETITOR POSITIONING\n"
        f"No positioning available against {competitor}. "
        "Add positioning to the knowledge base to cover this competitor."
    )


def format_methodology_section(methodology: Methodology, stage: str) -> str:
    lines = [f"METHODOLOGY: {methodology.name}"]
    guidance = find_stage_guidance(methodology, stage)
    if guidance is not None:
        stage_key, text = guidance
        lines.append(f"At {stage_key}: {text}")
    else:
        lines.append(methodology.description)
    return "\n".join(lines)


# ── Assembly ───────────────────────────────────────────────────────────────


def build_template_package(deal: DealContext, kb: KnowledgeBase) -> TemplatePackage:
    """Select entries for ``deal`` and render the package.

    Must only be called once ``content_gate(kb)`` has passed.
    """
    sections: list[str] = []
    case_ids: list[str] = []
    competitor_ids: list[str] = []

    objections = find_relevant_objections(deal, kb.objection_library)
    if objections:
        sections.append(format_objection_section(objections))

    case_study = find_best_case_study(deal, kb.case_studies)
    if case_study is not None:
        sections.append(format_case_study_section(case_study, deal))
        case_ids.append(case_study.id)
    else:
        sections.append(NO_CASE_STUDY_TEXT)

    positioning = find_competitor_positioning(deal.competitor, kb.competitor_positioning)
    if positioning is not None:
        sections.append(format_competitor_section(positioning))
        competitor_ids.append(positioning.id)
    elif deal.has_competitor:
        sections.append(format_missing_competitor_section(deal.competitor))

    if kb.methodology is not None:
        sections.append(format_methodology_section(kb.methodology, deal.deal_stage))

    content = "\n\n".join([format_deal_header(deal), SECTION_SEPARATOR, *sections])
    return TemplatePackage(
        content=content,
        case_studies_surfaced=case_ids,
        competitors_surfaced=competitor_ids,
    )


def build_template_enablement(deal: DealContext, kb: KnowledgeBase) -> str:
    """Rendered package text only."""
    return build_template_package(deal, kb).content
