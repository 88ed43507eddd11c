# backend/tests/conftest.py
"""
Shared fixtures for all test modules.
Avoids async fixtures to prevent event loop issues: async logic runs through
asyncio.run() inside plain test functions.

`store` is an in-memory stand-in for the campaign tables. store.wire(service)
swaps every repository a service (and the services it owns) holds for an
in-memory one, so the real service logic runs end to end without Postgres.
"""

import itertools
from datetime import datetime, timezone
from unittest.mock import MagicMock, AsyncMock

import pytest
from fastapi.testclient import TestClient

# Import app
from app.main import app
from app.modules.campaign_outreach.constants import (
    ApprovalStatus,
    CampaignLeadStatus,
    LogEventType,
)
from app.modules.campaign_outreach.repositories import (
    LeadRepository,
    CampaignRepository,
    CampaignLeadRepository,
    ApprovalRepository,
    AutomationLogRepository,
)

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# --- TEST CLIENT FIXTURE ---
@pytest.fixture(scope="module")
def test_client():
    """Create a FastAPI test client (lifespan not started: no scheduler, no pool)."""
    return TestClient(app)


# --- DB SESSION MOCK ---
@pytest.fixture
def mock_db():
    """AsyncSession stand-in: services only commit / rollback on it directly."""
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    return db


# --- SAMPLE DATA FIXTURES ---
@pytest.fixture
def sample_lead():
    """A lead ready for LinkedIn outreach."""
    return {
        "id": 7,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "full_name": "Ada Lovelace",
        "company": "Analytical Engines",
        "title": "Founder",
        "email": "ada@example.com",
        "linkedin_url": "https://www.linkedin.com/in/ada",
    }


@pytest.fixture
def store():
    return FakeStore()


# ============================================
# IN-MEMORY TABLES
# ============================================

class FakeStore:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now
        self.leads = {}
        self.steps = {}          # (campaign_id, step_order) -> step dict
        self.variants = {}       # sequence_id -> [variant dict]
        self.cursors = {}        # (campaign_id, lead_id) -> campaign_lead dict
        self.approvals = []
        self.logs = []
        self.active_campaigns = set()
        self._ids = itertools.count(1)

    def clock(self) -> datetime:
        return self.now

    # --- seeding helpers ---

    def add_lead(self, lead: dict) -> dict:
        self.leads[lead["id"]] = dict(lead)
        return self.leads[lead["id"]]

    def add_step(self, campaign_id: int, step_order: int, step_type: str, delay_days: int = 0, content=None) -> dict:
        step = {
            "id": next(self._ids),
            "campaign_id": campaign_id,
            "step_order": step_order,
            "type": step_type,
            "delay_days": delay_days,
        }
        self.steps[(campaign_id, step_order)] = step
        if content is not None:
            self.variants[step["id"]] = [{"content": content, "weight": 100, "is_active": True}]
        return step

    def add_cursor(self, campaign_id: int, lead_id: int, **fields) -> dict:
        cursor = {
            "id": next(self._ids),
            "campaign_id": campaign_id,
            "lead_id": lead_id,
            "status": CampaignLeadStatus.PENDING.value,
            "current_step": 1,
            "next_action_due": None,
            "last_container_id": None,
            "advanced_container_id": None,
            "last_activity_at": None,
        }
        cursor.update(fields)
        self.cursors[(campaign_id, lead_id)] = cursor
        self.active_campaigns.add(campaign_id)
        return cursor

    def add_approval(self, campaign_id: int, lead_id: int, step_type: str, content: str,
                     status: str = ApprovalStatus.PENDING.value, step_order=None) -> dict:
        item = {
            "id": next(self._ids),
            "campaign_id": campaign_id,
            "lead_id": lead_id,
            "step_type": step_type,
            "step_order": step_order,
            "generated_content": content,
            "status": status,
            "admin_feedback": None,
            "reviewed_at": None,
            "created_at": self.now,
        }
        self.approvals.append(item)
        return item

    def add_launch(self, step_type: str, at: datetime = None) -> dict:
        """A quota row as SafetyService.log_action writes it."""
        log = {
            "id": len(self.logs) + 1,
            "event_type": LogEventType.PHANTOM_LAUNCHED.value,
            "action": step_type,
            "status": "success",
            "details": {"step_type": step_type},
            "campaign_id": None,
            "lead_id": None,
            "created_at": at or self.now,
        }
        self.logs.append(log)
        return log

    def quota_rows(self, step_type: str) -> list:
        return [
            log for log in self.logs
            if log["event_type"] == LogEventType.PHANTOM_LAUNCHED.value
            and log["details"].get("step_type") == step_type
        ]

    def logs_of(self, event_type: str) -> list:
        return [log for log in self.logs if log["event_type"] == event_type]

    # --- wiring ---

    def wire(self, service, _seen=None):
        """Replace real repositories on service (recursively) with in-memory ones."""
        seen = _seen if _seen is not None else set()
        if id(service) in seen:
            return service
        seen.add(id(service))

        fakes = {
            LeadRepository: FakeLeadRepository,
            CampaignRepository: FakeCampaignRepository,
            CampaignLeadRepository: FakeCampaignLeadRepository,
            ApprovalRepository: FakeApprovalRepository,
            AutomationLogRepository: FakeLogRepository,
        }
        for name, value in list(vars(service).items()):
            fake = fakes.get(type(value))
            if fake is not None:
                setattr(service, name, fake(self))
            elif type(value).__module__.startswith("app.modules.campaign_outreach.services"):
                self.wire(value, seen)
        return service


class FakeLeadRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def get_by_id(self, lead_id):
        lead = self.store.leads.get(lead_id)
        return dict(lead) if lead else None

    async def get_leads_by_ids(self, lead_ids):
        return [dict(self.store.leads[i]) for i in lead_ids if i in self.store.leads]


class FakeCampaignRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def get_step(self, campaign_id, step_order):
        step = self.store.steps.get((campaign_id, step_order))
        return dict(step) if step else None

    async def has_step_after(self, campaign_id, step_order):
        return any(c == campaign_id and order > step_order for c, order in self.store.steps)

    async def get_step_orders(self, campaign_id):
        return sorted(order for c, order in self.store.steps if c == campaign_id)

    async def get_active_variants(self, sequence_id):
        return list(self.store.variants.get(sequence_id, []))


class FakeCampaignLeadRepository:
    """Mirrors the compare-and-set semantics of CampaignLeadRepository."""

    def __init__(self, store: FakeStore):
        self.store = store

    async def get(self, campaign_id, lead_id):
        cursor = self.store.cursors.get((campaign_id, lead_id))
        return dict(cursor) if cursor else None

    async def get_by_container_id(self, container_id):
        for cursor in self.store.cursors.values():
            if cursor["last_container_id"] == container_id:
                return dict(cursor)
        return None

    async def get_next_due_lead(self, now):
        due = [
            c for c in self.store.cursors.values()
            if c["campaign_id"] in self.store.active_campaigns
            and c["status"] in CampaignLeadStatus.due_statuses()
            and (c["next_action_due"] is None or c["next_action_due"] <= now)
            and (c["campaign_id"], c["current_step"]) in self.store.steps
        ]
        if not due:
            return None
        due.sort(key=lambda c: (c["next_action_due"] is not None, c["next_action_due"] or now, c["id"]))
        cursor = dict(due[0])
        step = self.store.steps[(cursor["campaign_id"], cursor["current_step"])]
        cursor.update({"sequence_id": step["id"], "step_type": step["type"], "delay_days": step["delay_days"]})
        return cursor

    async def update_status(self, campaign_id, lead_id, status, next_action_due="__unset__",
                            touch_activity=False, now=None):
        cursor = self.store.cursors.get((campaign_id, lead_id))
        if cursor is None:
            return
        cursor["status"] = status
        if next_action_due != "__unset__":
            cursor["next_action_due"] = next_action_due
        if touch_activity:
            cursor["last_activity_at"] = now

    async def set_container_id(self, campaign_id, lead_id, container_id, now):
        cursor = self.store.cursors[(campaign_id, lead_id)]
        cursor["last_container_id"] = container_id
        cursor["last_activity_at"] = now

    async def advance_to_step(self, campaign_id, lead_id, expected_step, next_step, next_action_due, now,
                              container_id=None):
        return self._compare_and_set(campaign_id, lead_id, expected_step, container_id, {
            "status": CampaignLeadStatus.PENDING.value,
            "current_step": next_step,
            "next_action_due": next_action_due,
            "last_activity_at": now,
        })

    async def complete_sequence(self, campaign_id, lead_id, expected_step, now, container_id=None):
        return self._compare_and_set(campaign_id, lead_id, expected_step, container_id, {
            "status": CampaignLeadStatus.COMPLETED.value,
            "next_action_due": None,
            "last_activity_at": now,
        })

    def _compare_and_set(self, campaign_id, lead_id, expected_step, container_id, values):
        cursor = self.store.cursors.get((campaign_id, lead_id))
        if cursor is None or cursor["current_step"] != expected_step:
            return False
        if container_id is not None and cursor["advanced_container_id"] == container_id:
            return False
        cursor.update(values)
        if container_id is not None:
            cursor["advanced_container_id"] = container_id
        return True


class FakeApprovalRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def get_by_id(self, item_id):
        return next((dict(i) for i in self.store.approvals if i["id"] == item_id), None)

    async def get_by_ids(self, item_ids):
        return [dict(i) for i in self.store.approvals if i["id"] in item_ids]

    async def get_pending_for_pair(self, campaign_id, lead_id):
        return next(
            (dict(i) for i in self.store.approvals
             if i["campaign_id"] == campaign_id and i["lead_id"] == lead_id
             and i["status"] == ApprovalStatus.PENDING.value),
            None
        )

    async def get_latest_for_step(self, campaign_id, lead_id, step_type, step_order=None):
        matches = [
            i for i in self.store.approvals
            if i["campaign_id"] == campaign_id and i["lead_id"] == lead_id and i["step_type"] == step_type
            and (step_order is None or i["step_order"] in (step_order, None))
        ]
        return dict(matches[-1]) if matches else None

    async def create(self, campaign_id, lead_id, step_type, content, step_order=None):
        return dict(self.store.add_approval(campaign_id, lead_id, step_type, content, step_order=step_order))

    async def resolve(self, item_id, status, reviewed_at, content=None):
        for item in self.store.approvals:
            if item["id"] == item_id and ApprovalStatus.is_open(item["status"]):
                item["status"] = status
                item["reviewed_at"] = reviewed_at
                if content is not None:
                    item["generated_content"] = content
                return dict(item)
        return None

    async def set_admin_feedback(self, item_id, feedback):
        for item in self.store.approvals:
            if item["id"] == item_id:
                item["admin_feedback"] = feedback


class FakeLogRepository:
    def __init__(self, store: FakeStore):
        self.store = store

    async def create_log(self, event_type=None, action=None, status=None, details=None,
                         campaign_id=None, lead_id=None):
        log = {
            "id": len(self.store.logs) + 1,
            "event_type": event_type,
            "action": action,
            "status": status,
            "details": details or {},
            "campaign_id": campaign_id,
            "lead_id": lead_id,
            "created_at": self.store.now,
        }
        self.store.logs.append(log)
        return log

    async def count_launches_since(self, step_type, since):
        return len([log for log in self.store.quota_rows(step_type) if log["created_at"] > since])
