"""Shared test fixtures.

Provides:
- Settings bound to a temporary data directory (no .env, no LLM keys)
- A JsonFileStore and repositories over that directory
- A configured knowledge base (two case studies, Gong/Outreach positioning,
  objections, MEDDIC) and an empty one
- CRM payloads for all six vendor shapes
- A FastAPI app with services wired and an httpx AsyncClient over it
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.enablement.config import Channel, Settings
from src.enablement.core.store import JsonFileStore
from src.enablement.feedback.repository import FeedbackRepository
from src.enablement.knowledge.repository import KnowledgeRepository
from src.enablement.knowledge.schemas import KnowledgeBase
from src.enablement.main import create_app, wire_services
from src.enablement.reps.repository import RepRepository


# ── Settings and storage ─────────────────────────────────────────────────────


def make_settings(tmp_path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "DATA_DIR": str(tmp_path),
        "CHANNEL": Channel.slack,
        "SLACK_BOT_TOKEN": "xoxb-test",
        "PMM_SLACK_ID": "UPMM",
        "TELEGRAM_BOT_TOKEN": "",
        "PMM_TELEGRAM_CHAT_ID": "",
        "ANTHROPIC_API_KEY": "",
        "OPENAI_API_KEY": "",
        "SYNC_SECRET": "",
        "SYNC_URL": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def settings_factory(tmp_path):
    """Build Settings for the test's data dir with field overrides."""

    def factory(**overrides: Any) -> Settings:
        return make_settings(tmp_path, **overrides)

    return factory


@pytest.fixture
def store(tmp_path) -> JsonFileStore:
    return JsonFileStore(tmp_path)


@pytest.fixture
def knowledge_repo(store) -> KnowledgeRepository:
    return KnowledgeRepository(store)


@pytest.fixture
def feedback_repo(store) -> FeedbackRepository:
    return FeedbackRepository(store)


@pytest.fixture
def rep_repo(store) -> RepRepository:
    return RepRepository(store)


# ── Knowledge base ───────────────────────────────────────────────────────────


CONFIGURED_KB: dict[str, Any] = {
    "case_studies": [
        {
            "id": "cs-001",
            "company": "FinServ Corp",
            "industry": "Financial Services",
            "segment": "Enterprise",
            "challenge": "Pipeline velocity stalling at proposal stage with 45-day average cycle",
            "result": "45% pipeline velocity increase within 3 months of deployment",
            "metric": "45% pipeline velocity increase",
            "relevant_stages": ["Proposal Sent", "Negotiation"],
            "resources": [
                {"label": "One Pager", "url": "https://canva.com/design/finserv-one-pager"},
            ],
        },
        {
            "id": "cs-002",
            "company": "HealthFirst",
            "industry": "Healthcare",
            "segment": "Mid-market",
            "challenge": "Manual follow-ups consuming 60% of rep time",
            "result": "60% reduction in manual follow-ups, $2M ARR expansion in 6 months",
            "metric": "60% reduction in manual follow-ups",
            "relevant_stages": ["Proposal Sent"],
            "resources": [],
        },
    ],
    "competitor_positioning": [
        {
            "id": "cp-001",
            "competitor": "Gong",
            "differentiator": "We offer real-time coaching during live calls, not just post-call analysis.",
            "category": "Conversation Intelligence",
            "supporting_evidence": "Reps using live coaching close 23% more deals.",
            "resources": [{"label": "Battle Card", "url": "https://canva.com/design/gong-battlecard"}],
        },
        {
            "id": "cp-002",
            "competitor": "Outreach",
            "differentiator": "Our sequences adapt to buyer signals in real time, not just time delays.",
            "category": "Sales Engagement",
            "supporting_evidence": "",
            "resources": [],
        },
    ],
    "objection_library": [
        {
            "id": "ob-001",
            "objection": "Your pricing is 30% higher than Gong",
            "response": "Live coaching pays for the difference within one quarter.",
            "competitor": "Gong",
            "category": "Pricing",
            "relevant_stages": ["Proposal Sent", "Negotiation"],
        },
        {
            "id": "ob-002",
            "objection": "We already have a conversation intelligence tool",
            "response": "Most CI tools analyze calls after the fact; ours coaches during the call.",
            "competitor": "",
            "category": "Switching Cost",
            "relevant_stages": ["Proposal Sent"],
        },
    ],
    "methodology": {
        "name": "MEDDIC",
        "description": "Metrics, Economic Buyer, Decision Criteria, Decision Process, Identify Pain, Champion",
        "stage_guidance": {
            "Proposal Sent": "Focus on Metrics and Decision Criteria. Quantify the business impact.",
            "Negotiation": "Focus on Economic Buyer and Champion alignment.",
        },
    },
    "_meta": {
        "last_updated": "2026-02-27T10:00:00.000Z",
        "version": "1.0",
        "entry_count": 7,
        "configured": True,
    },
}


@pytest.fixture
def kb_data() -> dict[str, Any]:
    return {key: value for key, value in CONFIGURED_KB.items()}


@pytest.fixture
def kb() -> KnowledgeBase:
    return KnowledgeBase.model_validate(CONFIGURED_KB)


@pytest.fixture
def empty_kb() -> KnowledgeBase:
    return KnowledgeBase()


@pytest_asyncio.fixture
async def seeded_knowledge(knowledge_repo, kb) -> KnowledgeRepository:
    await knowledge_repo.save(kb, push=False)
    return knowledge_repo


# ── CRM payloads ─────────────────────────────────────────────────────────────


@pytest.fixture
def hubspot_payload() -> dict[str, Any]:
    return {
        "properties": {
            "dealname": "Acme Corp Enterprise Platform",
            "dealstage": "Proposal Sent",
            "industry": "Financial Services",
            "competitor": "Gong",
            "amount": "150000",
            "company": "Acme Corp",
            "hubspot_owner_email": "sarah.chen@example.com",
            "rep_slack_id": "U04HUBSPOT1",
            "notes": "CFO involved in decision. Budget approved for Q2.",
            "product_interest": "Enterprise Platform",
        }
    }


@pytest.fixture
def salesforce_payload() -> dict[str, Any]:
    return {
        "Name": "GlobalTech Series B Expansion",
        "StageName": "Negotiation",
        "Industry__c": "SaaS / Technology",
        "Competitor__c": "Outreach",
        "Amount": 85000,
        "Account": {"Name": "GlobalTech Inc"},
        "Owner": {"Email": "james.rivera@example.com"},
        "Rep_Slack_ID__c": "U04SFDC1",
        "Description": "VP of Sales is champion, CRO needs ROI proof.",
    }


@pytest.fixture
def attio_payload() -> dict[str, Any]:
    return {
        "attributes": {
            "name": "DataSync Pro Deal",
            "stage": "Proposal Sent",
            "industry": "Healthcare",
            "competitor": "Salesloft",
            "company": "DataSync Health",
            "value": 120000,
            "owner_email": "lisa@example.com",
        }
    }


@pytest.fixture
def pipedrive_payload() -> dict[str, Any]:
    return {
        "current": {
            "title": "MedFlow Enterprise",
            "stage_name": "Negotiation",
            "org_name": "MedFlow Inc",
            "value": 95000,
            "industry": "Healthcare",
            "owner_email": "mike@example.com",
        },
        "previous": {"stage_name": "Proposal Sent"},
    }


@pytest.fixture
def close_payload() -> dict[str, Any]:
    return {
        "lead": {"display_name": "TechStart Seed Round", "name": "TechStart Inc"},
        "status_label": "Proposal Sent",
        "value": 45000,
        "industry": "SaaS / Technology",
        "competitor": "Apollo",
        "user_email": "rep@example.com",
        "rep_slack_id": "",
    }


@pytest.fixture
def generic_payload() -> dict[str, Any]:
    return {
        "deal_name": "QuickStart SMB Deal",
        "deal_stage": "Proposal Sent",
        "industry": "Healthcare",
        "competitor": "Not specified",
        "deal_size": 25000,
        "company_name": "MedFlow Health",
        "rep_email": "rep@example.com",
        "rep_slack_id": "",
    }


# ── Application ──────────────────────────────────────────────────────────────


@pytest.fixture
def app(settings):
    """FastAPI app with services wired (ASGITransport skips the lifespan)."""
    application = create_app(settings)
    wire_services(application, settings)
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
