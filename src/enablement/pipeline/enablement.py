"""CRM stage-change pipeline: enablement delivery and outcome tracking.

Runs after the CRM webhook has already been acknowledged. Steps for an
enablement stage, in order:

    1. Normalize the payload into a DealContext and apply defaults
    2. Resolve the rep's messaging identity (skip if unresolved)
    3. Read the knowledge base and check the content gate (skip if closed)
    4. Generate the package: LLM when configured, template otherwise
    5. Send it over the active channel
    6. Append a DeliveryEntry to the feedback log

Unresolved identities and a closed gate are terminal states, logged and
never retried. Generation and send failures abort the run before anything
is logged. A failed log append after a successful send is logged only; the
message is not recalled.

Outcome stages (Closed Won / Closed Lost) are correlated with earlier
deliveries by deal name and reported to the PMM.

Exports:
    EnablementPipeline: Orchestrator bound to repositories, resolver,
        delivery channel, PMM notifier and optional LLM service.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.enablement.config import Channel
from src.enablement.core.errors import DeliveryError, GenerationError, StoreError
from src.enablement.core.ids import generate_delivery_id, generate_feedback_id
from src.enablement.deals.enrich import enrich_deal_context
from src.enablement.deals.parse import parse_crm_payload
from src.enablement.deals.resolve import IdentityResolver
from src.enablement.deals.schemas import DealContext, PipelineResult, StageType
from src.enablement.deals.stages import CLOSED_WON_STAGE, classify_stage, extract_stage
from src.enablement.delivery.channels import DeliveryChannel, PmmNotifier
from src.enablement.delivery.log import build_delivery_entry
from src.enablement.feedback.correlate import find_outcome_delivery
from src.enablement.feedback.notify import build_outcome_notification
from src.enablement.feedback.repository import FeedbackRepository
from src.enablement.feedback.schemas import CLOSED_LOST, CLOSED_WON, FeedbackEntry, FeedbackSource
from src.enablement.knowledge.gate import content_gate
from src.enablement.knowledge.matcher import find_competitor_positioning
from src.enablement.knowledge.prompt import build_prompt
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.knowledge.schemas import KnowledgeBase
from src.enablement.knowledge.template import build_template_package
from src.enablement.services.llm import LLMService

logger = structlog.get_logger(__name__)


class EnablementPipeline:
    """Turns CRM stage changes into delivered enablement packages.

    Args:
        channel: Active delivery channel setting.
        knowledge: Knowledge base repository.
        feedback: Delivery/feedback log repository.
        resolver: Rep identity resolver.
        sender: Channel implementation that sends packages.
        notifier: PMM notifier for outcome alerts.
        llm: LLM service; None or unavailable means template packages.
        pmm_telegram_chat_id: Fallback recipient on Telegram.
    """

    def __init__(
        self,
        channel: Channel,
        knowledge: KnowledgeRepository,
        feedback: FeedbackRepository,
        resolver: IdentityResolver,
        sender: DeliveryChannel,
        notifier: PmmNotifier,
        llm: LLMService | None = None,
        pmm_telegram_chat_id: str = "",
    ) -> None:
        self._channel = channel
        self._knowledge = knowledge
        self._feedback = feedback
        self._resolver = resolver
        self._sender = sender
        self._notifier = notifier
        self._llm = llm
        self._pmm_telegram_chat_id = pmm_telegram_chat_id

    async def handle_crm_event(self, raw: Any) -> PipelineResult | FeedbackEntry | None:
        """Classify a CRM webhook and run the matching flow."""
        stage = extract_stage(raw)
        stage_type = classify_stage(stage)

        if stage_type == StageType.enablement:
            return await self.run(raw)
        if stage_type == StageType.outcome:
            return await self.process_outcome(raw, stage)

        logger.info("pipeline.stage_skipped", stage=stage)
        return None

    # ── Enablement ──────────────────────────────────────────────────────

    async def resolve_identity(self, deal: DealContext) -> DealContext:
        if self._channel == Channel.telegram:
            return await self._resolver.resolve_for_telegram(deal, self._pmm_telegram_chat_id)
        return await self._resolver.resolve_for_slack(deal)

    async def _generate(self, deal: DealContext, kb: KnowledgeBase) -> tuple[str, list[str], list[str]]:
        """Return (content, case study ids, positioning ids) for the package."""
        if self._llm is not None and self._llm.available:
            content = await self._llm.generate(build_prompt(deal, kb))
            positioning = find_competitor_positioning(deal.competitor, kb.competitor_positioning)
            # The model sees the whole library, so every case study counts as surfaced
            return (
                content,
                [cs.id for cs in kb.case_studies],
                [positioning.id] if positioning else [],
            )

        package = build_template_package(deal, kb)
        logger.info("pipeline.template_package", deal_name=deal.deal_name)
        return package.content, package.case_studies_surfaced, package.competitors_surfaced

    def _failed(self, deal: DealContext, error: str) -> PipelineResult:
        return PipelineResult(
            success=False,
            deal_name=deal.deal_name,
            deal_stage=deal.deal_stage,
            channel=self._channel.value,
            resolution_method=deal.resolution_method,
            error=error,
        )

    async def run(self, raw: Any) -> PipelineResult:
        deal = enrich_deal_context(parse_crm_payload(raw))
        log = logger.bind(deal_name=deal.deal_name, deal_stage=deal.deal_stage, crm=deal.source_crm.value)

        deal = await self.resolve_identity(deal)
        if not deal.identity_resolved:
            log.warning("pipeline.unresolved", reason="no messaging id, email or directory match")
            return self._failed(deal, "unresolved rep identity")

        kb = await self._knowledge.get()
        if not content_gate(kb):
            log.warning("pipeline.gate_blocked", reason="knowledge base has no case studies")
            return self._failed(deal, "knowledge base not configured")

        try:
            content, case_ids, competitor_ids = await self._generate(deal, kb)
        except GenerationError as exc:
            log.error("pipeline.generation_failed", error=str(exc))
            return self._failed(deal, f"generation failed: {exc}")

        delivery_id = generate_delivery_id()
        try:
            await self._sender.deliver(deal, content, delivery_id)
        except DeliveryError as exc:
            log.error(
                "pipeline.delivery_failed",
                platform=exc.platform,
                endpoint=exc.endpoint,
                error=exc.description,
                recipient=deal.rep_messaging_id,
            )
            return self._failed(deal, str(exc))

        entry = build_delivery_entry(deal, delivery_id, self._sender.name, case_ids, competitor_ids)
        try:
            await self._feedback.append_delivery(entry)
        except StoreError as exc:
            log.error("pipeline.delivery_log_failed", delivery_id=delivery_id, error=str(exc))

        log.info(
            "pipeline.delivered",
            delivery_id=delivery_id,
            channel=self._sender.name,
            resolution_method=deal.resolution_method.value,
        )
        return PipelineResult(
            success=True,
            deal_name=deal.deal_name,
            deal_stage=deal.deal_stage,
            channel=self._sender.name,
            delivery_id=delivery_id,
            resolution_method=deal.resolution_method,
        )

    # ── Outcomes ────────────────────────────────────────────────────────

    async def process_outcome(self, raw: Any, stage: str) -> FeedbackEntry | None:
        """Record a Closed Won/Lost for a previously enabled deal.

        Returns the outcome FeedbackEntry, or None when the deal never
        received enablement.
        """
        deal = parse_crm_payload(raw)
        log = await self._feedback.get()
        delivery = find_outcome_delivery(deal.deal_name, log.deliveries)

        if delivery is None:
            logger.info("pipeline.outcome_untracked", deal_name=deal.deal_name, stage=stage)
            return None

        entry = FeedbackEntry(
            id=generate_feedback_id(),
            delivery_id=delivery.delivery_id,
            source=FeedbackSource.outcome,
            value=CLOSED_WON if stage == CLOSED_WON_STAGE else CLOSED_LOST,
            rep_id=delivery.rep_id,
            deal_name=deal.deal_name,
        )
        await self._feedback.append_feedback(entry)

        notification = build_outcome_notification(
            deal.deal_name,
            stage,
            deal.company_name,
            deal.industry,
            deal.deal_size,
            delivery,
        )
        await self._notifier.notify(notification)

        logger.info(
            "pipeline.outcome_recorded",
            deal_name=deal.deal_name,
            stage=stage,
            enabled_at=delivery.deal_stage,
        )
        return entry
