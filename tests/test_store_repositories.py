"""Tests for the JSON file store and the three repositories over it."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from src.enablement.core.errors import StoreError
from src.enablement.core.store import JsonFileStore
from src.enablement.core.sync import KB_ENDPOINT, REP_DIRECTORY_ENDPOINT
from src.enablement.feedback.schemas import DeliveryEntry, FeedbackEntry, FeedbackSource
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.knowledge.schemas import CaseStudy
from src.enablement.reps.repository import RepRepository
from src.enablement.reps.schemas import RegisteredVia, RepDirectory, RepEntry


def _delivery(n: int) -> DeliveryEntry:
    return DeliveryEntry(
        delivery_id=f"del-{n}",
        deal_name=f"Deal {n}",
        deal_stage="Proposal Sent",
        industry="Healthcare",
        competitor="Not specified",
        rep_id="U1",
        channel="slack",
    )


# ── JsonFileStore ────────────────────────────────────────────────────────────


class TestJsonFileStore:
    async def test_missing_file_is_created_from_default(self, store, tmp_path):
        data = await store.read("thing", lambda: {"items": []})

        assert data == {"items": []}
        assert json.loads((tmp_path / "thing.json").read_text()) == {"items": []}

    async def test_write_then_read(self, store, tmp_path):
        await store.write("thing", {"a": 1, "name": "Zoë"})

        assert await store.read("thing", dict) == {"a": 1, "name": "Zoë"}
        assert not list(tmp_path.glob("*.tmp"))

    async def test_creates_data_dir(self, tmp_path):
        nested = JsonFileStore(tmp_path / "nested" / "data")
        await nested.write("thing", {"ok": True})
        assert (tmp_path / "nested" / "data" / "thing.json").exists()

    async def test_invalid_json_raises(self, store, tmp_path):
        (tmp_path / "thing.json").write_text("{broken")

        with pytest.raises(StoreError, match="thing"):
            await store.read("thing", dict)

    async def test_non_object_raises(self, store, tmp_path):
        (tmp_path / "thing.json").write_text("[1, 2]")

        with pytest.raises(StoreError, match="expected a JSON object"):
            await store.read("thing", dict)

    async def test_unwritable_path_raises_store_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        broken = JsonFileStore(blocker)

        with pytest.raises(StoreError):
            await broken.write("thing", {})

    def test_lock_is_per_key(self, store):
        assert store.lock("a") is store.lock("a")
        assert store.lock("a") is not store.lock("b")


# ── KnowledgeRepository ──────────────────────────────────────────────────────


class TestKnowledgeRepository:
    async def test_empty_kb_created_on_first_read(self, knowledge_repo, tmp_path):
        kb = await knowledge_repo.get()

        assert kb.case_studies == []
        assert kb.meta.configured is False
        on_disk = json.loads((tmp_path / "knowledge-base.json").read_text())
        assert on_disk["_meta"]["configured"] is False

    async def test_save_recomputes_meta(self, knowledge_repo, kb, tmp_path):
        kb.meta.entry_count = 0
        kb.meta.configured = False

        saved = await knowledge_repo.save(kb, push=False)

        assert saved.meta.entry_count == 7
        assert saved.meta.configured is True
        assert saved.meta.last_updated.endswith("Z")
        on_disk = json.loads((tmp_path / "knowledge-base.json").read_text())
        assert on_disk["_meta"]["entry_count"] == 7
        assert "meta" not in on_disk

    async def test_round_trip(self, seeded_knowledge):
        kb = await seeded_knowledge.get()

        assert [cs.id for cs in kb.case_studies] == ["cs-001", "cs-002"]
        assert kb.case_studies[0].resources[0].label == "One Pager"
        assert kb.methodology is not None and kb.methodology.name == "MEDDIC"

    async def test_removing_last_case_study_unconfigures(self, seeded_knowledge):
        def drop_case_studies(kb):
            kb.case_studies.clear()
            return True

        kb, _ = await seeded_knowledge.update(drop_case_studies)

        assert kb.meta.configured is False
        assert (await seeded_knowledge.get()).meta.configured is False

    async def test_falsy_update_skips_write(self, knowledge_repo):
        await knowledge_repo.get()

        kb, result = await knowledge_repo.update(lambda kb: None)

        assert result is None
        assert kb.meta.last_updated == ""
        assert (await knowledge_repo.get()).meta.last_updated == ""

    async def test_concurrent_updates_all_land(self, knowledge_repo):
        def add(n):
            def mutate(kb):
                kb.case_studies.append(CaseStudy(id=f"cs-{n:03d}", company=f"C{n}", industry="Retail"))
                return True

            return mutate

        await asyncio.gather(*(knowledge_repo.update(add(n)) for n in range(1, 11)))

        kb = await knowledge_repo.get()
        assert len(kb.case_studies) == 10
        assert kb.meta.entry_count == 10

    async def test_writes_are_pushed_but_replace_is_not(self, store, kb):
        sync = MagicMock()
        repo = KnowledgeRepository(store, sync)

        await repo.replace(kb)
        sync.schedule.assert_not_called()

        await repo.save(kb)
        sync.schedule.assert_called_once()
        endpoint, payload = sync.schedule.call_args.args
        assert endpoint == KB_ENDPOINT
        assert payload["_meta"]["configured"] is True


# ── FeedbackRepository ───────────────────────────────────────────────────────


class TestFeedbackRepository:
    async def test_appends_keep_meta_totals(self, feedback_repo):
        await feedback_repo.append_delivery(_delivery(1))
        await feedback_repo.append_feedback(
            FeedbackEntry(id="fb-1", delivery_id="del-1", source=FeedbackSource.reaction, value="helpful")
        )

        log = await feedback_repo.get()
        assert log.meta.total_deliveries == 1
        assert log.meta.total_feedback == 1
        assert log.feedback[0].delivery_id == "del-1"

    async def test_concurrent_appends_are_not_lost(self, feedback_repo):
        await asyncio.gather(*(feedback_repo.append_delivery(_delivery(n)) for n in range(25)))

        log = await feedback_repo.get()
        assert len(log.deliveries) == 25
        assert log.meta.total_deliveries == 25
        assert {d.delivery_id for d in log.deliveries} == {f"del-{n}" for n in range(25)}


# ── RepRepository ────────────────────────────────────────────────────────────


class TestRepRepository:
    async def test_upsert_merges_blank_fields(self, rep_repo):
        await rep_repo.upsert(RepEntry(email="sarah@example.com", name="Sarah", slack_id="U1"))
        merged = await rep_repo.upsert(
            RepEntry(email="SARAH@example.com", telegram_chat_id="555", registered_via=RegisteredVia.bot_start)
        )

        assert merged.slack_id == "U1"
        assert merged.telegram_chat_id == "555"
        assert merged.name == "Sarah"
        assert merged.registered_via == RegisteredVia.bot_start

        directory = await rep_repo.get()
        assert len(directory.reps) == 1
        assert directory.meta.total_reps == 1

    async def test_remove_is_case_insensitive(self, rep_repo):
        await rep_repo.upsert(RepEntry(email="a@example.com", slack_id="U1"))

        assert await rep_repo.remove("A@EXAMPLE.COM") is True
        assert await rep_repo.remove("a@example.com") is False
        assert (await rep_repo.get()).meta.total_reps == 0

    async def test_find_by_telegram_chat_id(self, rep_repo):
        await rep_repo.upsert(RepEntry(email="tg@example.com", telegram_chat_id="777"))

        assert (await rep_repo.find_by_telegram_chat_id("777")).email == "tg@example.com"
        assert await rep_repo.find_by_telegram_chat_id("") is None

    async def test_upsert_pushes_and_replace_does_not(self, store):
        sync = MagicMock()
        repo = RepRepository(store, sync)

        await repo.replace(RepDirectory(reps=[RepEntry(email="x@example.com")]))
        sync.schedule.assert_not_called()

        await repo.upsert(RepEntry(email="y@example.com"))
        endpoint, payload = sync.schedule.call_args.args
        assert endpoint == REP_DIRECTORY_ENDPOINT
        assert payload["_meta"]["total_reps"] == 2
