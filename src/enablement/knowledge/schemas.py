"""Pydantic schemas for the knowledge base.

The knowledge base is a single JSON document curated by the PMM. It holds
the only material enablement packages may draw on: case studies,
competitor positioning, an objection library, and an optional sales
methodology. ``_meta.configured`` is true exactly when at least one case
study exists, and is recomputed on every write.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

KB_VERSION = "1.0"

CASE_STUDY_PREFIX = "cs"
COMPETITOR_PREFIX = "cp"
OBJECTION_PREFIX = "ob"


class ResourceLink(BaseModel):
    label: str
    url: str


class CaseStudy(BaseModel):
    id: str
    company: str
    industry: str
    segment: str = "Mid-market"
    challenge: str = ""
    result: str = ""
    metric: str = ""
    relevant_stages: list[str] = Field(default_factory=list)
    resources: list[ResourceLink] = Field(default_factory=list)


class CompetitorPositioning(BaseModel):
    id: str
    competitor: str
    differentiator: str
    category: str = "General"
    supporting_evidence: str = ""
    resources: list[ResourceLink] = Field(default_factory=list)


class ObjectionEntry(BaseModel):
    id: str
    objection: str
    response: str
    competitor: str = ""
    category: str = "General"
    relevant_stages: list[str] = Field(default_factory=list)


class Methodology(BaseModel):
    name: str
    description: str = ""
    stage_guidance: dict[str, str] = Field(default_factory=dict)


class KnowledgeBaseMeta(BaseModel):
    last_updated: str = ""
    version: str = KB_VERSION
    entry_count: int = 0
    configured: bool = False
    # Highest sequence number ever issued per id prefix; removals never lower it.
    last_ids: dict[str, int] = Field(default_factory=dict)


class KnowledgeBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    case_studies: list[CaseStudy] = Field(default_factory=list)
    competitor_positioning: list[CompetitorPositioning] = Field(default_factory=list)
    objection_library: list[ObjectionEntry] = Field(default_factory=list)
    methodology: Methodology | None = None
    meta: KnowledgeBaseMeta = Field(default_factory=KnowledgeBaseMeta, alias="_meta")

    @property
    def entry_count(self) -> int:
        return (
            len(self.case_studies)
            + len(self.competitor_positioning)
            + len(self.objection_library)
            + (1 if self.methodology else 0)
        )

    def refresh_meta(self, timestamp: str) -> None:
        """Recompute the derived ``_meta`` fields before a write."""
        self.meta.entry_count = self.entry_count
        self.meta.configured = len(self.case_studies) > 0
        self.meta.last_updated = timestamp
