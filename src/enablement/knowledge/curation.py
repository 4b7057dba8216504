"""PMM-facing knowledge base curation.

Every mutation goes through ``KnowledgeRepository.update`` so it is applied
under the KB lock, recomputes ``_meta`` and is pushed to the remote server
when sync is configured. Search and removal by name use case-insensitive
substring matches.

Exports:
    KnowledgeCurator: add/remove/search entries, set the methodology,
        preview a package for a hypothetical deal.
    SearchResult: entries matched by ``search_entries``.
    RemovedEntry: what ``remove_entry`` deleted.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog
from pydantic import BaseModel, Field

from src.enablement.core.ids import generate_id, id_number
from src.enablement.deals.enrich import enrich_deal_context
from src.enablement.deals.schemas import DealContext, ResolutionMethod
from src.enablement.knowledge.gate import content_gate
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.knowledge.schemas import (
    CASE_STUDY_PREFIX,
    COMPETITOR_PREFIX,
    OBJECTION_PREFIX,
    CaseStudy,
    CompetitorPositioning,
    KnowledgeBase,
    Methodology,
    ObjectionEntry,
    ResourceLink,
)
from src.enablement.knowledge.template import build_template_enablement

logger = structlog.get_logger(__name__)

DEFAULT_RELEVANT_STAGES = ("Proposal Sent", "Negotiation")
DEFAULT_PREVIEW_STAGE = "Proposal Sent"


class SearchResult(BaseModel):
    case_studies: list[CaseStudy] = Field(default_factory=list)
    competitor_positioning: list[CompetitorPositioning] = Field(default_factory=list)
    objections: list[ObjectionEntry] = Field(default_factory=list)


class RemovedEntry(BaseModel):
    id: str
    kind: str  # case_study | competitor | objection
    label: str


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def _any_stage(stages: Sequence[str], needle: str) -> bool:
    return any(_contains(s, needle) for s in stages)


def _pop_case_study(kb: KnowledgeBase, index: int) -> RemovedEntry:
    cs = kb.case_studies.pop(index)
    return RemovedEntry(id=cs.id, kind="case_study", label=cs.company)


def _pop_competitor(kb: KnowledgeBase, index: int) -> RemovedEntry:
    cp = kb.competitor_positioning.pop(index)
    return RemovedEntry(id=cp.id, kind="competitor", label=cp.competitor)


def _pop_objection(kb: KnowledgeBase, index: int) -> RemovedEntry:
    ob = kb.objection_library.pop(index)
    return RemovedEntry(id=ob.id, kind="objection", label=ob.objection)


def _issue_id(kb: KnowledgeBase, prefix: str, existing_ids: Iterable[str]) -> str:
    """Next id for ``prefix``, recorded in ``_meta.last_ids`` so it is never reissued."""
    entry_id = generate_id(prefix, existing_ids, kb.meta.last_ids.get(prefix, 0))
    kb.meta.last_ids[prefix] = id_number(prefix, entry_id)
    return entry_id


def _first_index(items: Sequence, predicate) -> int | None:
    for index, item in enumerate(items):
        if predicate(item):
            return index
    return None


class KnowledgeCurator:
    """Curation operations over the knowledge base.

    Args:
        knowledge: Knowledge base repository.
    """

    def __init__(self, knowledge: KnowledgeRepository) -> None:
        self._knowledge = knowledge

    async def get(self) -> KnowledgeBase:
        return await self._knowledge.get()

    @property
    def path(self) -> str:
        return self._knowledge.path

    # ── Additions ───────────────────────────────────────────────────────

    async def add_case_study(
        self,
        company: str,
        industry: str,
        challenge: str,
        result: str,
        metric: str,
        segment: str = "Mid-market",
        relevant_stages: Sequence[str] | None = None,
        resources: Sequence[ResourceLink] = (),
    ) -> tuple[KnowledgeBase, CaseStudy]:
        def mutate(kb: KnowledgeBase) -> CaseStudy:
            entry = CaseStudy(
                id=_issue_id(kb, CASE_STUDY_PREFIX, (cs.id for cs in kb.case_studies)),
                company=company,
                industry=industry,
                segment=segment,
                challenge=challenge,
                result=result,
                metric=metric,
                relevant_stages=list(relevant_stages if relevant_stages is not None else DEFAULT_RELEVANT_STAGES),
                resources=list(resources),
            )
            kb.case_studies.append(entry)
            return entry

        kb, entry = await self._knowledge.update(mutate)
        logger.info("curation.case_study_added", id=entry.id, company=company)
        return kb, entry

    async def add_competitor(
        self,
        competitor: str,
        differentiator: str,
        category: str = "General",
        supporting_evidence: str = "",
        resources: Sequence[ResourceLink] = (),
    ) -> tuple[KnowledgeBase, CompetitorPositioning]:
        def mutate(kb: KnowledgeBase) -> CompetitorPositioning:
            entry = CompetitorPositioning(
                id=_issue_id(kb, COMPETITOR_PREFIX, (cp.id for cp in kb.competitor_positioning)),
                competitor=competitor,
                differentiator=differentiator,
                category=category,
                supporting_evidence=supporting_evidence,
                resources=list(resources),
            )
            kb.competitor_positioning.append(entry)
            return entry

        kb, entry = await self._knowledge.update(mutate)
        logger.info("curation.competitor_added", id=entry.id, competitor=competitor)
        return kb, entry

    async def add_objection(
        self,
        objection: str,
        response: str,
        competitor: str = "",
        category: str = "General",
        relevant_stages: Sequence[str] | None = None,
    ) -> tuple[KnowledgeBase, ObjectionEntry]:
        def mutate(kb: KnowledgeBase) -> ObjectionEntry:
            entry = ObjectionEntry(
                id=_issue_id(kb, OBJECTION_PREFIX, (ob.id for ob in kb.objection_library)),
                objection=objection,
                response=response,
                competitor=competitor,
                category=category,
                relevant_stages=list(relevant_stages if relevant_stages is not None else DEFAULT_RELEVANT_STAGES),
            )
            kb.objection_library.append(entry)
            return entry

        kb, entry = await self._knowledge.update(mutate)
        logger.info("curation.objection_added", id=entry.id, category=category)
        return kb, entry

    async def set_methodology(
        self,
        name: str,
        description: str,
        stage_guidance: dict[str, str] | None = None,
    ) -> tuple[KnowledgeBase, Methodology]:
        def mutate(kb: KnowledgeBase) -> Methodology:
            kb.methodology = Methodology(name=name, description=description, stage_guidance=dict(stage_guidance or {}))
            return kb.methodology

        kb, methodology = await self._knowledge.update(mutate)
        logger.info("curation.methodology_set", name=name, stages=len(methodology.stage_guidance))
        return kb, methodology

    # ── Removal ─────────────────────────────────────────────────────────

    async def remove_entry(self, entry_id: str = "", name: str = "") -> tuple[KnowledgeBase, RemovedEntry | None]:
        """Remove one entry by exact id, or the first entry matching ``name``.

        Name matching tries case study companies, then competitor names, then
        objection text or category. Returns None when nothing matched.
        """

        def by_id(kb: KnowledgeBase) -> RemovedEntry | None:
            index = _first_index(kb.case_studies, lambda cs: cs.id == entry_id)
            if index is not None:
                return _pop_case_study(kb, index)
            index = _first_index(kb.competitor_positioning, lambda cp: cp.id == entry_id)
            if index is not None:
                return _pop_competitor(kb, index)
            index = _first_index(kb.objection_library, lambda ob: ob.id == entry_id)
            if index is not None:
                return _pop_objection(kb, index)
            return None

        def by_name(kb: KnowledgeBase) -> RemovedEntry | None:
            index = _first_index(kb.case_studies, lambda cs: _contains(cs.company, name))
            if index is not None:
                return _pop_case_study(kb, index)
            index = _first_index(kb.competitor_positioning, lambda cp: _contains(cp.competitor, name))
            if index is not None:
                return _pop_competitor(kb, index)
            index = _first_index(
                kb.objection_library,
                lambda ob: _contains(ob.objection, name) or _contains(ob.category, name),
            )
            if index is not None:
                return _pop_objection(kb, index)
            return None

        if entry_id:
            kb, removed = await self._knowledge.update(by_id)
        elif name:
            kb, removed = await self._knowledge.update(by_name)
        else:
            return await self._knowledge.get(), None

        if removed is not None:
            logger.info("curation.entry_removed", id=removed.id, kind=removed.kind)
        return kb, removed

    # ── Queries ─────────────────────────────────────────────────────────

    async def search_entries(self, industry: str = "", competitor: str = "", stage: str = "") -> SearchResult:
        kb = await self._knowledge.get()

        case_studies = kb.case_studies
        if industry:
            case_studies = [cs for cs in case_studies if _contains(cs.industry, industry)]
        if stage:
            case_studies = [cs for cs in case_studies if _any_stage(cs.relevant_stages, stage)]

        positioning = []
        if competitor:
            positioning = [cp for cp in kb.competitor_positioning if _contains(cp.competitor, competitor)]

        objections = kb.objection_library
        if competitor:
            objections = [ob for ob in objections if _contains(ob.competitor, competitor)]
        if stage:
            objections = [ob for ob in objections if _any_stage(ob.relevant_stages, stage)]

        return SearchResult(
            case_studies=list(case_studies),
            competitor_positioning=positioning,
            objections=list(objections),
        )

    async def preview(
        self,
        deal_name: str,
        deal_stage: str = DEFAULT_PREVIEW_STAGE,
        company_name: str = "",
        industry: str = "",
        competitor: str = "",
        deal_size: float = 0,
        deal_notes: str = "",
    ) -> tuple[DealContext, str] | None:
        """Render the template package a rep would receive for this deal.

        Returns None when the content gate is closed.
        """
        kb = await self._knowledge.get()
        if not content_gate(kb):
            return None

        deal = enrich_deal_context(
            DealContext(
                deal_name=deal_name,
                deal_stage=deal_stage,
                company_name=company_name or deal_name,
                industry=industry,
                competitor=competitor,
                deal_size=max(deal_size, 0),
                deal_notes=deal_notes,
                resolution_method=ResolutionMethod.manual,
            )
        )
        return deal, build_template_enablement(deal, kb)
