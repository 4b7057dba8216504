"""Rep identity resolution.

Finds the messaging address for a deal's owner through an ordered,
short-circuiting chain. For Slack:

    1. ``rep_messaging_id`` carried on the CRM payload  -> crm_field
    2. rep directory entry with a slack_id              -> rep_directory
    3. Slack users.lookupByEmail, cached to directory   -> slack_api_lookup
    4. the raw email address                            -> email_fallback
    5. nothing                                          -> unresolved

For Telegram only the directory's telegram_chat_id counts, with the PMM's
chat as an optional fallback.

An unresolved deal is a terminal state, not an error: the pipeline skips it
and never retries. A failed platform lookup logs and leaves the deal on the
email fallback.

Exports:
    IdentityResolver: Resolver bound to a rep directory and optional Slack client.
"""

from __future__ import annotations

import structlog

from src.enablement.deals.schemas import DealContext, ResolutionMethod
from src.enablement.reps.repository import RepRepository
from src.enablement.reps.schemas import RegisteredVia, RepEntry
from src.enablement.services.slack import SlackClient

logger = structlog.get_logger(__name__)


def _resolved(deal: DealContext, messaging_id: str, method: ResolutionMethod) -> DealContext:
    return deal.model_copy(
        update={
            "rep_messaging_id": messaging_id,
            "identity_resolved": True,
            "resolution_method": method,
        }
    )


def _unresolved(deal: DealContext) -> DealContext:
    return deal.model_copy(
        update={
            "identity_resolved": False,
            "resolution_method": ResolutionMethod.unresolved,
        }
    )


class IdentityResolver:
    """Resolves rep messaging identities for Slack and Telegram delivery.

    Args:
        reps: Rep directory repository (read for lookups, written when a
            Slack lookup result is cached).
        slack: Slack client for users.lookupByEmail. When None, step 3 of
            the chain is skipped.
    """

    def __init__(self, reps: RepRepository, slack: SlackClient | None = None) -> None:
        self._reps = reps
        self._slack = slack

    async def resolve(self, deal: DealContext) -> DealContext:
        """Run steps 1, 2, 4 and 5 of the Slack chain (no network I/O)."""
        if deal.rep_messaging_id:
            return _resolved(deal, deal.rep_messaging_id, ResolutionMethod.crm_field)

        if deal.rep_email:
            rep = await self._reps.find_by_email(deal.rep_email)
            if rep is not None and rep.slack_id:
                return _resolved(deal, rep.slack_id, ResolutionMethod.rep_directory)
            return _resolved(deal, deal.rep_email, ResolutionMethod.email_fallback)

        return _unresolved(deal)

    async def lookup_via_slack(self, deal: DealContext) -> DealContext:
        """Upgrade an email-fallback deal to a real Slack user id.

        On success the rep is cached in the directory so later deals resolve
        at step 2. Any failure returns ``deal`` unchanged.
        """
        if self._slack is None or deal.resolution_method != ResolutionMethod.email_fallback:
            return deal

        result = await self._slack.lookup_user_by_email(deal.rep_email)
        user = result.data.get("user") if result.ok else None
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            logger.warning(
                "resolve.slack_lookup_failed",
                email=deal.rep_email,
                error=result.error or "missing user id",
            )
            return deal

        try:
            await self._reps.upsert(
                RepEntry(
                    email=deal.rep_email,
                    name=user.get("real_name") or deal.rep_email,
                    slack_id=user_id,
                    registered_via=RegisteredVia.slack_api_lookup,
                )
            )
        except Exception:
            # Caching is best effort; the lookup result is still valid
            logger.warning("resolve.cache_write_failed", email=deal.rep_email, exc_info=True)

        logger.info("resolve.slack_lookup_cached", email=deal.rep_email, slack_id=user_id)
        return _resolved(deal, user_id, ResolutionMethod.slack_api_lookup)

    async def resolve_for_slack(self, deal: DealContext) -> DealContext:
        """Full Slack chain, including the cached platform lookup."""
        deal = await self.resolve(deal)
        if deal.resolution_method == ResolutionMethod.email_fallback:
            deal = await self.lookup_via_slack(deal)
        return deal

    async def resolve_for_telegram(self, deal: DealContext, pmm_chat_id: str = "") -> DealContext:
        """Telegram chain: directory chat id, else the PMM chat, else unresolved."""
        if deal.rep_email:
            rep = await self._reps.find_by_email(deal.rep_email)
            if rep is not None and rep.telegram_chat_id:
                return _resolved(deal, rep.telegram_chat_id, ResolutionMethod.rep_directory_telegram)

        if pmm_chat_id:
            logger.info("resolve.telegram_pmm_fallback", deal_name=deal.deal_name)
            return _resolved(deal, pmm_chat_id, ResolutionMethod.pmm_fallback)

        return _unresolved(deal)
