"""Curation server: the PMM manages the knowledge base by chatting.

An MCP tool server over stdio. The PMM asks an assistant to "add a case
study for FinServ Corp" and the assistant calls ``add_case_study``; the
entry lands in ``<DATA_DIR>/knowledge-base.json``. When ``SYNC_URL`` and
``SYNC_SECRET`` are both set, every knowledge base and rep directory write
is also pushed to the deployed webhook server.

Tools return markdown text meant to be read back to the PMM.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Literal

import httpx
import structlog
from mcp.server.fastmcp import FastMCP

from src.enablement.api.middleware.logging import configure_structlog
from src.enablement.config import Settings, get_settings
from src.enablement.core.store import JsonFileStore
from src.enablement.core.sync import RemoteSync
from src.enablement.deals.schemas import DEFAULT_COMPETITOR
from src.enablement.feedback.analytics import (
    FeedbackSummary,
    OutcomeFilter,
    list_field_signals,
    list_outcomes,
    summarize_feedback,
)
from src.enablement.feedback.notify import UNKNOWN_DEAL, UNKNOWN_REP
from src.enablement.feedback.repository import FeedbackRepository
from src.enablement.feedback.schemas import FeedbackSource
from src.enablement.knowledge.curation import DEFAULT_PREVIEW_STAGE, KnowledgeCurator
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.knowledge.schemas import KnowledgeBase, ResourceLink
from src.enablement.reps.repository import RepRepository
from src.enablement.reps.schemas import RegisteredVia, RepEntry

logger = structlog.get_logger(__name__)

LIST_SECTIONS = ("case_studies", "competitors", "objections", "methodology")


# ── Services ────────────────────────────────────────────────────────────────


class CurationServices:
    """Repositories the curation tools operate on, bound to one data dir."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self.sync: RemoteSync | None = None
        if settings.sync_enabled:
            self.sync = RemoteSync(
                settings.SYNC_URL,
                settings.SYNC_SECRET,
                timeout=settings.HTTP_TIMEOUT,
                transport=transport,
            )
        store = JsonFileStore(settings.data_path)
        self.knowledge = KnowledgeRepository(store, self.sync)
        self.curator = KnowledgeCurator(self.knowledge)
        self.feedback = FeedbackRepository(store)
        self.reps = RepRepository(store, self.sync)


_services: CurationServices | None = None


def configure(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> CurationServices:
    """Bind the tools to ``settings`` (defaults to the environment)."""
    global _services
    _services = CurationServices(settings or get_settings(), transport=transport)
    return _services


def _svc() -> CurationServices:
    return _services if _services is not None else configure()


@asynccontextmanager
async def curation_lifespan(server: FastMCP) -> AsyncIterator[None]:
    settings = get_settings()
    configure_structlog(settings)
    services = configure(settings)
    if settings.SYNC_URL and not settings.SYNC_SECRET:
        logger.warning("mcp.sync_disabled", reason="SYNC_URL is set but SYNC_SECRET is missing")
    logger.info("mcp.started", data_dir=str(settings.data_path), sync_enabled=services.sync is not None)
    try:
        yield
    finally:
        if services.sync is not None:
            await services.sync.drain()


mcp = FastMCP(
    "JIT Enablement",
    instructions=(
        "Manage the sales enablement knowledge base: case studies, competitor "
        "positioning, objections and the sales methodology. Start with "
        "get_status(), add at least one case study so the webhook server is "
        "unblocked, then preview a package with generate_enablement()."
    ),
    lifespan=curation_lifespan,
    json_response=True,
)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _resources_line(resources: Sequence[ResourceLink]) -> str:
    return ", ".join(f"{r.label} ({r.url})" for r in resources)


def _last_updated(value: str) -> str:
    return value or "Never"


def _render_summary(summary: FeedbackSummary) -> str:
    lines = [
        f"📊 **Feedback Summary** (last {summary.days} days)",
        f"- {summary.deliveries} enablement deliveries sent",
        f"- {summary.reactions} reactions received: {summary.helpful} helpful "
        f"({summary.helpful_rate}%), {summary.not_helpful} not helpful",
        f"- {summary.field_signals} field signals from reps",
        f"- {summary.outcomes} outcomes tracked: {summary.closed_won} closed won, {summary.closed_lost} closed lost",
    ]

    if summary.top_content:
        lines += ["", "**Top surfaced content:**"]
        for item in summary.top_content:
            lines.append(
                f"- {item.case_study_id}: surfaced {item.surfaced} times, "
                f"{item.helpful} helpful, {item.not_helpful} not helpful"
            )

    if summary.needs_review:
        lines += ["", "⚠️ **Content to review:**"]
        for item in summary.needs_review:
            lines.append(f"- {item.case_study_id}: {item.not_helpful} not-helpful reaction(s), may need updating")

    if summary.is_empty:
        lines += [
            "",
            "No delivery or feedback data yet. Once the webhook server starts delivering "
            "enablement packages and reps react, data will appear here.",
        ]
    return "\n".join(lines)


def _kb_totals(kb: KnowledgeBase) -> str:
    return f"Knowledge base now has {kb.meta.entry_count} entries."


# ── Tools: knowledge base ───────────────────────────────────────────────────


@mcp.tool()
async def add_case_study(
    company: str,
    industry: str,
    challenge: str,
    result: str,
    metric: str,
    segment: str = "Mid-market",
    relevant_stages: list[str] | None = None,
    resources: list[ResourceLink] | None = None,
) -> str:
    """Add a customer case study to the knowledge base.

    Args:
        company: Customer company name (e.g. 'Acme Corp').
        industry: Customer's industry (e.g. 'Financial Services', 'Healthcare').
        challenge: The business challenge they faced (1-2 sentences).
        result: The outcome after using the product, with specific metrics.
        metric: The headline metric (e.g. '45% pipeline velocity increase').
        segment: 'Enterprise', 'Mid-market' or 'SMB'.
        relevant_stages: Deal stages where this case study is most relevant.
            Defaults to Proposal Sent and Negotiation.
        resources: Optional links to one-pagers, decks or docs.
    """
    kb, entry = await _svc().curator.add_case_study(
        company=company,
        industry=industry,
        challenge=challenge,
        result=result,
        metric=metric,
        segment=segment,
        relevant_stages=relevant_stages,
        resources=resources or (),
    )
    return (
        f'Added case study "{company}" ({industry}, {segment}) with ID {entry.id}.\n\n'
        f"Knowledge base now has {kb.meta.entry_count} entries "
        f"({len(kb.case_studies)} case studies, {len(kb.competitor_positioning)} competitor positions)."
    )


@mcp.tool()
async def add_competitor(
    competitor: str,
    differentiator: str,
    category: str = "General",
    supporting_evidence: str = "",
    resources: list[ResourceLink] | None = None,
) -> str:
    """Add positioning against a competitor: a sharp line the rep can use verbatim.

    Args:
        competitor: Competitor name (e.g. 'Gong', 'Outreach').
        differentiator: Key differentiator against this competitor (1-2 sentences).
        category: Category of competition (e.g. 'Conversation Intelligence').
        supporting_evidence: Optional data point backing the claim.
        resources: Optional links to battle cards or compete sheets.
    """
    kb, entry = await _svc().curator.add_competitor(
        competitor=competitor,
        differentiator=differentiator,
        category=category,
        supporting_evidence=supporting_evidence,
        resources=resources or (),
    )
    return (
        f'Added competitive positioning against "{competitor}" with ID {entry.id}.\n\n'
        f"You now have positioning against {len(kb.competitor_positioning)} competitor(s)."
    )


@mcp.tool()
async def set_methodology(name: str, description: str, stage_guidance: dict[str, str] | None = None) -> str:
    """Set or replace the team's sales methodology (MEDDIC, BANT, Challenger...).

    Args:
        name: Methodology name.
        description: Brief description of the methodology and its components.
        stage_guidance: Deal stage -> what to focus on at that stage.
    """
    _, methodology = await _svc().curator.set_methodology(name, description, stage_guidance)
    return (
        f'Set sales methodology to "{name}" with guidance for {len(methodology.stage_guidance)} stage(s).\n\n'
        f"All enablement content will now be framed using {name} principles."
    )


@mcp.tool()
async def add_objection(
    objection: str,
    response: str,
    competitor: str = "",
    category: str = "General",
    relevant_stages: list[str] | None = None,
) -> str:
    """Add an objection and its recommended response to the objection library.

    Args:
        objection: What the buyer says (e.g. 'Your pricing is too high compared to Gong').
        response: The response the rep should use (2-3 sentences).
        competitor: Competitor the objection relates to; blank when general.
        category: e.g. 'Pricing', 'Security', 'Integration', 'ROI'.
        relevant_stages: Stages where it typically comes up.
    """
    kb, entry = await _svc().curator.add_objection(
        objection=objection,
        response=response,
        competitor=competitor,
        category=category,
        relevant_stages=relevant_stages,
    )
    competitor_tag = f" | Competitor: {competitor}" if competitor else ""
    return (
        f'Added objection "{objection[:60]}..." to the library with ID {entry.id}.\n\n'
        f"Category: {category}{competitor_tag}\n"
        f"Objection library now has {len(kb.objection_library)} entries."
    )


@mcp.tool()
async def generate_enablement(
    deal_name: str,
    deal_stage: str = DEFAULT_PREVIEW_STAGE,
    company_name: str = "",
    industry: str = "",
    competitor: str = "",
    deal_size: float = 0,
    deal_notes: str = "",
) -> str:
    """Preview the enablement package a rep would receive for a deal.

    Works without CRM webhooks, chat tokens or LLM keys: the package is
    assembled from the knowledge base with the template composer.
    """
    preview = await _svc().curator.preview(
        deal_name=deal_name,
        deal_stage=deal_stage,
        company_name=company_name,
        industry=industry,
        competitor=competitor,
        deal_size=deal_size,
        deal_notes=deal_notes,
    )
    if preview is None:
        return (
            "Cannot generate enablement package: the knowledge base is empty or not configured.\n\n"
            "Add at least one case study first:\n"
            '  "Add a case study for FinServ Corp in Financial Services. '
            'They saw 45% pipeline velocity increase."\n\n'
            "Then try again."
        )

    deal, content = preview
    competitor_note = f" competing against {deal.competitor}" if deal.competitor != DEFAULT_COMPETITOR else ""
    return (
        "**Enablement Package Preview**\n"
        f"_{deal.industry} deal at {deal.deal_stage}{competitor_note}_\n\n"
        f"---\n\n{content}\n\n---\n\n"
        "This is what a rep would receive when this deal moves stage. "
        "To deliver this automatically, connect your CRM webhook to the server.\n\n"
        "To refine: update your case studies, objections, or competitor positioning and generate again."
    )


@mcp.tool()
async def list_entries(
    type: Literal["all", "case_studies", "competitors", "objections", "methodology"] = "all",
) -> str:
    """List knowledge base entries, optionally one collection only."""
    kb = await _svc().curator.get()
    parts: list[str] = []
    show = set(LIST_SECTIONS) if type == "all" else {type}

    if "case_studies" in show:
        if not kb.case_studies:
            parts.append("**Case Studies:** None added yet.")
        else:
            parts.append(f"**Case Studies ({len(kb.case_studies)}):**")
            for cs in kb.case_studies:
                line = f"  - [{cs.id}] {cs.company} ({cs.industry}, {cs.segment}): {cs.metric}"
                if cs.resources:
                    line += f"\n    Resources: {_resources_line(cs.resources)}"
                parts.append(line)

    if "competitors" in show:
        if not kb.competitor_positioning:
            parts.append("\n**Competitor Positioning:** None added yet.")
        else:
            parts.append(f"\n**Competitor Positioning ({len(kb.competitor_positioning)}):**")
            for cp in kb.competitor_positioning:
                line = f"  - [{cp.id}] vs. {cp.competitor} ({cp.category}): {cp.differentiator}"
                if cp.resources:
                    line += f"\n    Resources: {_resources_line(cp.resources)}"
                parts.append(line)

    if "objections" in show:
        if not kb.objection_library:
            parts.append("\n**Objection Library:** None added yet.")
        else:
            parts.append(f"\n**Objection Library ({len(kb.objection_library)}):**")
            for ob in kb.objection_library:
                competitor_tag = f" | vs. {ob.competitor}" if ob.competitor else ""
                parts.append(f'  - [{ob.id}] ({ob.category}{competitor_tag}) "{ob.objection}"')
                parts.append(f"    → {ob.response}")

    if "methodology" in show:
        if kb.methodology is None:
            parts.append("\n**Sales Methodology:** Not configured.")
        else:
            parts.append(f"\n**Sales Methodology:** {kb.methodology.name}")
            parts.append(f"  {kb.methodology.description}")
            for stage, guidance in kb.methodology.stage_guidance.items():
                parts.append(f"  - {stage}: {guidance}")

    status = "Configured" if kb.meta.configured else "Not configured"
    parts.append(
        f"\n**Status:** {status} | {kb.meta.entry_count} total entries | "
        f"Last updated: {_last_updated(kb.meta.last_updated)}"
    )
    return "\n".join(parts)


@mcp.tool()
async def search_entries(industry: str = "", competitor: str = "", stage: str = "") -> str:
    """Search the knowledge base by industry, competitor or deal stage (partial matches)."""
    found = await _svc().curator.search_entries(industry=industry, competitor=competitor, stage=stage)
    parts: list[str] = []

    if not found.case_studies:
        parts.append("**Case Studies:** No matches found.")
    else:
        parts.append(f"**Matching Case Studies ({len(found.case_studies)}):**")
        for cs in found.case_studies:
            parts.append(
                f"  - [{cs.id}] {cs.company} ({cs.industry}): {cs.metric}\n"
                f"    Challenge: {cs.challenge}\n    Result: {cs.result}"
            )

    if competitor:
        if not found.competitor_positioning:
            parts.append(f'\n**Competitor Positioning vs. "{competitor}":** No matches found.')
        else:
            parts.append(f'\n**Positioning vs. "{competitor}" ({len(found.competitor_positioning)}):**')
            for cp in found.competitor_positioning:
                parts.append(f"  - {cp.differentiator}")
                if cp.supporting_evidence:
                    parts.append(f"    Evidence: {cp.supporting_evidence}")
                if cp.resources:
                    parts.append(f"    Resources: {_resources_line(cp.resources)}")

    if found.objections:
        parts.append(f"\n**Matching Objections ({len(found.objections)}):**")
        for ob in found.objections:
            parts.append(f'  - [{ob.id}] "{ob.objection}"\n    → {ob.response}')

    return "\n".join(parts)


@mcp.tool()
async def remove_entry(id: str = "", name: str = "") -> str:
    """Remove an entry by ID (e.g. 'cs-001') or the first entry whose name matches.

    Name matching checks case study companies, then competitors, then
    objection text and category.
    """
    kb, removed = await _svc().curator.remove_entry(entry_id=id, name=name)
    if removed is None:
        target = f'ID "{id}"' if id else f'name "{name}"'
        return f"No entry found matching {target}. Use list_entries to see all entries."

    if removed.kind == "case_study":
        description = f'case study "{removed.label}"'
    elif removed.kind == "competitor":
        description = f'competitor positioning vs. "{removed.label}"'
    else:
        description = f'objection "{removed.label[:50]}..."'
    return f"Removed {description}.\n\n{_kb_totals(kb)}"


@mcp.tool()
async def get_status() -> str:
    """Is the knowledge base configured, how big is it, when was it last updated?"""
    services = _svc()
    kb = await services.curator.get()
    lines = [
        "**Knowledge Base Status**",
        f"- Configured: {'Yes' if kb.meta.configured else 'No'}",
        f"- Case Studies: {len(kb.case_studies)}",
        f"- Competitor Positions: {len(kb.competitor_positioning)}",
        f"- Objection Library: {len(kb.objection_library)}",
        f"- Methodology: {kb.methodology.name if kb.methodology else 'Not set'}",
        f"- Total Entries: {kb.meta.entry_count}",
        f"- Last Updated: {_last_updated(kb.meta.last_updated)}",
        f"- File: {services.curator.path}",
        f"- Remote sync: {services.sync.base_url if services.sync else 'Disabled'}",
        "",
        "The webhook server will use this content for enablement packages."
        if kb.meta.configured
        else "The webhook server is currently BLOCKED: it will not send any output until you add at least one case study.",
    ]
    return "\n".join(lines)


@mcp.tool()
async def upload_document(
    content: str,
    document_type: Literal["battle_card", "case_study", "general"] = "general",
    source_name: str = "uploaded document",
) -> str:
    """Hand a document's text back for extraction into structured entries.

    The assistant reads the returned text and calls add_case_study and
    add_competitor for whatever it finds.
    """
    return (
        f'Document received: "{source_name}" ({document_type}, {len(content)} characters).\n\n'
        f"Here is the document content for extraction:\n\n---\n{content}\n---\n\n"
        "Please extract any case studies and competitor positioning from this document, "
        "then use the add_case_study and add_competitor tools to add them to the knowledge base."
    )


# ── Tools: feedback analytics ───────────────────────────────────────────────


@mcp.tool()
async def get_feedback_summary(days: int = 30) -> str:
    """How enablement content is performing over the last ``days`` days."""
    log = await _svc().feedback.get()
    return _render_summary(summarize_feedback(log, days=days))


@mcp.tool()
async def get_outcomes(outcome: OutcomeFilter = OutcomeFilter.all) -> str:
    """Enabled deals that closed (won or lost) and what content they received."""
    log = await _svc().feedback.get()
    records = list_outcomes(log, outcome)
    if not records:
        label = "" if outcome == OutcomeFilter.all else f"{outcome.value} "
        return f"No {label}outcome data yet."

    lines = [f"🎯 **Deal Outcomes** ({len(records)} total)", ""]
    for record in records:
        emoji, label = ("🎉", "Won") if record.won else ("📉", "Lost")
        lines.append(f"{emoji} **{record.feedback.deal_name or UNKNOWN_DEAL}**: {label}")
        delivery = record.delivery
        if delivery is not None:
            lines.append(f"  - Enablement delivered at: {delivery.deal_stage} ({delivery.timestamp})")
            if delivery.case_studies_surfaced:
                lines.append(f"  - Case studies used: {', '.join(delivery.case_studies_surfaced)}")
            if delivery.competitors_surfaced:
                lines.append(f"  - Competitor positioning used: {', '.join(delivery.competitors_surfaced)}")
        lines.append("")
    return "\n".join(lines)


@mcp.tool()
async def get_field_signals(days: int = 30) -> str:
    """What reps report from the field: thread replies and call intel."""
    log = await _svc().feedback.get()
    records = list_field_signals(log, days=days)
    if not records:
        return f"No field signals in the last {days} days."

    lines = [f"💬 **Field Signals** (last {days} days, {len(records)} total)", ""]
    for record in records:
        signal = record.feedback
        if signal.source == FeedbackSource.call_intel:
            lines.append("📞 **Call intel**")
        else:
            lines.append("💬 **Rep reply**")
        if signal.deal_name:
            lines.append(f"  Deal: {signal.deal_name}")
        elif record.delivery is not None:
            d = record.delivery
            lines.append(f"  Deal: {d.deal_name} ({d.deal_stage}, {d.industry})")
        lines.append(f'  "{signal.raw_text or signal.value}"')
        lines.append(f"  - {signal.rep_id or UNKNOWN_REP}, {signal.timestamp}")
        lines.append("")

    lines += [
        "---",
        "Review these signals and update your knowledge base if any objections "
        "or competitive intel are not currently covered.",
    ]
    return "\n".join(lines)


# ── Tools: rep directory ────────────────────────────────────────────────────


@mcp.tool()
async def add_rep(email: str, name: str, slack_id: str = "", telegram_chat_id: str = "") -> str:
    """Add or update a rep, mapping their CRM email to a messaging ID.

    Args:
        email: Rep's email address as it appears in the CRM.
        name: Display name.
        slack_id: Slack member ID (profile → More → Copy member ID).
        telegram_chat_id: Telegram chat ID, for Telegram deployments.
    """
    reps = _svc().reps
    await reps.upsert(
        RepEntry(
            email=email,
            name=name,
            slack_id=slack_id,
            telegram_chat_id=telegram_chat_id,
            registered_via=RegisteredVia.manual,
        )
    )
    directory = await reps.get()

    if slack_id:
        routing = f"Slack DMs → {slack_id}"
    elif telegram_chat_id:
        routing = f"Telegram → {telegram_chat_id}"
    else:
        routing = "No messaging ID yet; will try Slack API lookup by email"
    return (
        f'✓ Rep "{name}" ({email}) added to directory.\nRouting: {routing}\n\n'
        f"Team size: {directory.meta.total_reps} rep(s) registered."
    )


@mcp.tool()
async def list_reps() -> str:
    """List all reps in the directory with their messaging IDs."""
    directory = await _svc().reps.get()
    if not directory.reps:
        return (
            "**Rep Directory:** Empty, no reps registered yet.\n\n"
            "Use add_rep to register reps so enablement messages can reach them. "
            "You'll need their email (must match CRM) and Slack user ID."
        )

    lines = [f"**Rep Directory** ({len(directory.reps)} reps)", ""]
    for rep in directory.reps:
        routing = [f"Slack: {rep.slack_id}" if rep.slack_id else "No Slack ID"]
        if rep.telegram_chat_id:
            routing.append(f"Telegram: {rep.telegram_chat_id}")
        lines.append(f"- **{rep.name}** ({rep.email}): {' | '.join(routing)}")
        lines.append(f"  Added: {rep.registered_at} via {rep.registered_via.value}")

    lines += ["", f"Last updated: {_last_updated(directory.meta.last_updated)}"]
    return "\n".join(lines)


@mcp.tool()
async def remove_rep(email: str) -> str:
    """Remove a rep from the directory by email."""
    reps = _svc().reps
    if not await reps.remove(email):
        return f'No rep found with email "{email}". Use list_reps to see all registered reps.'
    directory = await reps.get()
    return f'✓ Removed rep "{email}" from directory.\n\nTeam size: {directory.meta.total_reps} rep(s) remaining.'


# ── Entry point ─────────────────────────────────────────────────────────────


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
