"""Tests for the rep identity resolution chain (Slack and Telegram)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.enablement.deals.resolve import IdentityResolver
from src.enablement.deals.schemas import DealContext, ResolutionMethod
from src.enablement.reps.schemas import RegisteredVia, RepEntry
from src.enablement.services.slack import PlatformResponse


def _slack_returning(response: PlatformResponse) -> MagicMock:
    slack = MagicMock()
    slack.lookup_user_by_email = AsyncMock(return_value=response)
    return slack


# ── Slack chain ──────────────────────────────────────────────────────────────


class TestSlackChain:
    async def test_crm_field_short_circuits_directory(self):
        reps = MagicMock()
        reps.find_by_email = AsyncMock()
        resolver = IdentityResolver(reps)

        deal = await resolver.resolve(DealContext(rep_messaging_id="U123", rep_email="a@example.com"))

        assert deal.identity_resolved is True
        assert deal.resolution_method == ResolutionMethod.crm_field
        assert deal.rep_messaging_id == "U123"
        reps.find_by_email.assert_not_awaited()

    async def test_directory_slack_id(self, rep_repo):
        await rep_repo.upsert(RepEntry(email="Sarah@Example.com", name="Sarah", slack_id="U_SARAH"))
        resolver = IdentityResolver(rep_repo)

        deal = await resolver.resolve(DealContext(rep_email="sarah@example.com"))

        assert deal.resolution_method == ResolutionMethod.rep_directory
        assert deal.rep_messaging_id == "U_SARAH"

    async def test_directory_entry_without_slack_id_uses_email(self, rep_repo):
        await rep_repo.upsert(RepEntry(email="tg@example.com", telegram_chat_id="999"))
        resolver = IdentityResolver(rep_repo)

        deal = await resolver.resolve(DealContext(rep_email="tg@example.com"))

        assert deal.resolution_method == ResolutionMethod.email_fallback
        assert deal.rep_messaging_id == "tg@example.com"

    async def test_no_identity_is_unresolved(self, rep_repo):
        deal = await IdentityResolver(rep_repo).resolve(DealContext())

        assert deal.identity_resolved is False
        assert deal.resolution_method == ResolutionMethod.unresolved

    async def test_slack_lookup_is_cached_in_directory(self, rep_repo):
        slack = _slack_returning(
            PlatformResponse(ok=True, data={"user": {"id": "U_LOOKED_UP", "real_name": "Jamie Rep"}})
        )
        resolver = IdentityResolver(rep_repo, slack=slack)

        deal = await resolver.resolve_for_slack(DealContext(rep_email="jamie@example.com"))

        assert deal.resolution_method == ResolutionMethod.slack_api_lookup
        assert deal.rep_messaging_id == "U_LOOKED_UP"
        slack.lookup_user_by_email.assert_awaited_once_with("jamie@example.com")

        cached = await rep_repo.find_by_email("jamie@example.com")
        assert cached is not None
        assert cached.slack_id == "U_LOOKED_UP"
        assert cached.name == "Jamie Rep"
        assert cached.registered_via == RegisteredVia.slack_api_lookup

        # Second deal resolves from the directory without another lookup
        again = await resolver.resolve_for_slack(DealContext(rep_email="jamie@example.com"))
        assert again.resolution_method == ResolutionMethod.rep_directory
        slack.lookup_user_by_email.assert_awaited_once()

    async def test_failed_lookup_keeps_email_fallback(self, rep_repo):
        slack = _slack_returning(PlatformResponse(ok=False, error="users_not_found"))
        resolver = IdentityResolver(rep_repo, slack=slack)

        deal = await resolver.resolve_for_slack(DealContext(rep_email="ghost@example.com"))

        assert deal.resolution_method == ResolutionMethod.email_fallback
        assert deal.rep_messaging_id == "ghost@example.com"
        assert await rep_repo.find_by_email("ghost@example.com") is None

    async def test_lookup_skipped_for_other_methods(self, rep_repo):
        slack = _slack_returning(PlatformResponse(ok=True, data={"user": {"id": "U_X"}}))
        resolver = IdentityResolver(rep_repo, slack=slack)

        deal = await resolver.resolve_for_slack(DealContext(rep_messaging_id="U_CRM", rep_email="x@example.com"))

        assert deal.resolution_method == ResolutionMethod.crm_field
        slack.lookup_user_by_email.assert_not_awaited()


# ── Telegram chain ───────────────────────────────────────────────────────────


class TestTelegramChain:
    async def test_directory_chat_id(self, rep_repo):
        await rep_repo.upsert(RepEntry(email="tg@example.com", telegram_chat_id="12345"))

        deal = await IdentityResolver(rep_repo).resolve_for_telegram(
            DealContext(rep_email="tg@example.com"), pmm_chat_id="PMM"
        )

        assert deal.resolution_method == ResolutionMethod.rep_directory_telegram
        assert deal.rep_messaging_id == "12345"

    async def test_crm_slack_id_is_ignored_on_telegram(self, rep_repo):
        deal = await IdentityResolver(rep_repo).resolve_for_telegram(
            DealContext(rep_messaging_id="U_SLACK", rep_email="nobody@example.com"), pmm_chat_id="PMM"
        )

        assert deal.resolution_method == ResolutionMethod.pmm_fallback
        assert deal.rep_messaging_id == "PMM"

    @pytest.mark.parametrize("email", ["", "nobody@example.com"])
    async def test_unresolved_without_pmm_chat(self, rep_repo, email):
        deal = await IdentityResolver(rep_repo).resolve_for_telegram(DealContext(rep_email=email))

        assert deal.identity_resolved is False
        assert deal.resolution_method == ResolutionMethod.unresolved
