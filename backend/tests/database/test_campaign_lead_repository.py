# backend/tests/database/test_campaign_lead_repository.py
"""
Campaign Lead Repository Tests (real Postgres)

Runs the compare-and-set cursor updates against the migrated schema.
Everything happens inside one transaction that is rolled back at the end,
so the database is left untouched. Skipped when DATABASE_URL is not set.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession

from app.modules.campaign_outreach.models import Lead, Campaign, Sequence, CampaignLead
from app.modules.campaign_outreach.repositories import CampaignLeadRepository, AutomationLogRepository

# Load env
load_dotenv()


def get_database_url():
    """Get database URL from environment."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")
    return url


async def run_in_rolled_back_session(test_logic):
    """Give test_logic a session whose work is discarded afterwards."""
    engine = create_async_engine(
        get_database_url(),
        echo=False,
        connect_args={"statement_cache_size": 0, "prepared_statement_cache_size": 0}
    )
    async with engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)
        try:
            await test_logic(session)
        finally:
            await session.close()
            await transaction.rollback()
    await engine.dispose()


async def seed(session, step_delays=(0, 3)):
    suffix = datetime.now(timezone.utc).strftime("%H%M%S%f")
    lead = Lead(first_name="Test", last_name="Lead", linkedin_url=f"https://www.linkedin.com/in/test-{suffix}")
    campaign = Campaign(name=f"Repository test {suffix}", status="active")
    session.add_all([lead, campaign])
    await session.flush()

    for order, delay in enumerate(step_delays, start=1):
        session.add(Sequence(
            campaign_id=campaign.id,
            step_order=order,
            type="connection_request" if order == 1 else "message",
            delay_days=delay
        ))
    session.add(CampaignLead(campaign_id=campaign.id, lead_id=lead.id, status="pending", current_step=1))
    await session.flush()
    return campaign.id, lead.id


def test_advance_is_compare_and_set():
    async def test_logic(session):
        campaign_id, lead_id = await seed(session)
        repo = CampaignLeadRepository(session)
        now = datetime.now(timezone.utc)

        moved = await repo.advance_to_step(campaign_id, lead_id, 1, 2, now + timedelta(days=3), now, container_id="c-1")
        stale = await repo.advance_to_step(campaign_id, lead_id, 1, 2, now, now)
        duplicate = await repo.complete_sequence(campaign_id, lead_id, 2, now, container_id="c-1")

        assert moved is True
        assert stale is False
        assert duplicate is False

        cursor = await repo.get(campaign_id, lead_id)
        assert cursor["current_step"] == 2
        assert cursor["advanced_container_id"] == "c-1"
        assert cursor["status"] == "pending"

    asyncio.run(run_in_rolled_back_session(test_logic))


def test_next_due_lead_joins_current_step():
    async def test_logic(session):
        campaign_id, lead_id = await seed(session)
        repo = CampaignLeadRepository(session)

        due = await repo.get_next_due_lead(datetime.now(timezone.utc) + timedelta(days=3650))

        assert due is not None
        assert due["step_type"] in ("connection_request", "message")
        assert "sequence_id" in due

    asyncio.run(run_in_rolled_back_session(test_logic))


def test_container_lookup_and_quota_count():
    async def test_logic(session):
        campaign_id, lead_id = await seed(session)
        repo = CampaignLeadRepository(session)
        log_repo = AutomationLogRepository(session)
        now = datetime.now(timezone.utc)

        await repo.set_container_id(campaign_id, lead_id, "container-xyz", now)
        match = await repo.get_by_container_id("container-xyz")
        assert match["lead_id"] == lead_id

        before = await log_repo.count_launches_since("connection_request", now - timedelta(hours=24))
        await log_repo.create_log(
            event_type="phantom_launched",
            action="connection_request",
            status="success",
            details={"step_type": "connection_request"},
            campaign_id=campaign_id,
            lead_id=lead_id
        )
        after = await log_repo.count_launches_since("connection_request", now - timedelta(hours=24))
        assert after == before + 1

    asyncio.run(run_in_rolled_back_session(test_logic))
