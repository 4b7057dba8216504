"""Knowledge base -- curated grounding material and the content it produces.

Components:
- schemas: KnowledgeBase and its entry models
- repository: KnowledgeRepository for whole-document reads and writes
- gate: content_gate, the anti-fabrication precondition
- matcher: deterministic scoring of entries against a deal
- template: LLM-free enablement packages
- prompt: constrained LLM prompt composer
- curation: KnowledgeCurator, the PMM's add/search/remove operations
"""
