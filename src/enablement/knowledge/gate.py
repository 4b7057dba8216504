"""Content gate: the anti-fabrication precondition.

No enablement content (template or generated) is produced unless the
knowledge base is configured and holds at least one case study. Empty
competitor positioning or objections are fine; without a case study there
is nothing verified to ground a package on.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from src.enablement.knowledge.schemas import KnowledgeBase


def content_gate(kb: KnowledgeBase | Mapping[str, Any]) -> bool:
    """Return True when content generation is allowed.

    Accepts a parsed KnowledgeBase or a raw mapping. A raw mapping may carry
    ``configured`` inside ``_meta`` or at the top level.
    """
    if isinstance(kb, KnowledgeBase):
        return kb.meta.configured is True and len(kb.case_studies) > 0

    case_studies = kb.get("case_studies")
    meta = kb.get("_meta")
    if isinstance(meta, Mapping) and "configured" in meta:
        configured = meta.get("configured")
    else:
        configured = kb.get("configured")
    return configured is True and isinstance(case_studies, list) and len(case_studies) > 0
