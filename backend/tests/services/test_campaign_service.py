"""
Campaign management: sequence contiguity, lifecycle transitions, steps, leads
and the explicit AI generation action.
"""
import asyncio
from unittest.mock import MagicMock, AsyncMock, patch

import pytest

from app.shared.utils.cache import app_cache
from app.shared.utils.exceptions import (
    EntityNotFoundError,
    InvalidStateError,
    SequenceValidationError,
)
from app.modules.campaign_outreach.services.campaign_service import CampaignService, check_contiguity


@pytest.fixture(autouse=True)
def clear_cache():
    app_cache.invalidate_pattern("campaigns:*")
    yield
    app_cache.invalidate_pattern("campaigns:*")


@pytest.fixture
def mock_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value={"id": 1, "name": "Q3 founders", "status": "draft"})
    repo.get_step_orders = AsyncMock(return_value=[1, 2])
    repo.count_leads = AsyncMock(return_value=3)
    repo.update_status = AsyncMock(side_effect=lambda campaign_id, status, **kw: {"id": campaign_id, "status": status})
    repo.create = AsyncMock(side_effect=lambda values: {"id": 2, **values})
    repo.create_step = AsyncMock(side_effect=lambda campaign_id, values: {"id": 10 + values["step_order"], **values})
    repo.create_variant = AsyncMock(return_value={"id": 99, "content": "Hi"})
    repo.get_sequences = AsyncMock(return_value=[])
    repo.get_campaign_leads = AsyncMock(return_value=[])
    return repo


def make_service(mock_db, mock_repo, **kwargs):
    service = CampaignService(mock_db, **kwargs)
    service.repo = mock_repo
    service.campaign_lead_repo = MagicMock()
    service.campaign_lead_repo.activate_for_launch = AsyncMock(return_value=3)
    service.campaign_lead_repo.shift_steps_after = AsyncMock()
    service.campaign_lead_repo.add_leads = AsyncMock(side_effect=lambda campaign_id, ids, now: list(ids))
    service.lead_repo = MagicMock()
    return service


# --- CONTIGUITY ---

def test_check_contiguity():
    assert check_contiguity([1, 2, 3])["contiguous"] is True
    assert check_contiguity([])["contiguous"] is False
    assert check_contiguity([1, 3]) == {"contiguous": False, "step_orders": [1, 3], "missing": [2]}
    assert check_contiguity([2, 3])["missing"] == [1]


# --- LIFECYCLE ---

def test_launch_activates_campaign_and_leads(mock_db, mock_repo):
    service = make_service(mock_db, mock_repo)

    result = asyncio.run(service.launch_campaign(1))

    assert result == {"success": True, "campaign": {"id": 1, "status": "active"}, "leads_activated": 3}
    assert "launched_at" in mock_repo.update_status.call_args.kwargs
    service.campaign_lead_repo.activate_for_launch.assert_called_once()
    mock_db.commit.assert_called()


def test_launch_rejects_gap_in_sequence(mock_db, mock_repo):
    mock_repo.get_step_orders = AsyncMock(return_value=[1, 3])
    service = make_service(mock_db, mock_repo)

    with pytest.raises(SequenceValidationError) as exc_info:
        asyncio.run(service.launch_campaign(1))

    assert exc_info.value.missing_steps == [2]
    mock_repo.update_status.assert_not_called()


def test_launch_rejects_empty_sequence_and_no_leads(mock_db, mock_repo):
    mock_repo.get_step_orders = AsyncMock(return_value=[])
    with pytest.raises(SequenceValidationError):
        asyncio.run(make_service(mock_db, mock_repo).launch_campaign(1))

    mock_repo.get_step_orders = AsyncMock(return_value=[1])
    mock_repo.count_leads = AsyncMock(return_value=0)
    with pytest.raises(InvalidStateError):
        asyncio.run(make_service(mock_db, mock_repo).launch_campaign(1))


def test_launch_requires_draft_or_paused(mock_db, mock_repo):
    mock_repo.get_by_id = AsyncMock(return_value={"id": 1, "status": "active"})

    with pytest.raises(InvalidStateError):
        asyncio.run(make_service(mock_db, mock_repo).launch_campaign(1))


def test_pause_and_resume_transitions(mock_db, mock_repo):
    mock_repo.get_by_id = AsyncMock(return_value={"id": 1, "status": "active"})
    service = make_service(mock_db, mock_repo)
    assert asyncio.run(service.pause_campaign(1))["campaign"]["status"] == "paused"

    with pytest.raises(InvalidStateError):
        asyncio.run(service.resume_campaign(1))

    mock_repo.get_by_id = AsyncMock(return_value={"id": 1, "status": "paused"})
    assert asyncio.run(service.resume_campaign(1))["campaign"]["status"] == "active"


def test_missing_campaign_raises_not_found(mock_db, mock_repo):
    mock_repo.get_by_id = AsyncMock(return_value=None)

    with pytest.raises(EntityNotFoundError):
        asyncio.run(make_service(mock_db, mock_repo).get_campaign(404))


# --- CRUD ---

def test_create_campaign_from_template_seeds_steps(mock_db, mock_repo):
    service = make_service(mock_db, mock_repo)

    campaign = asyncio.run(service.create_campaign({"name": "Founders", "template_id": "default-connections"}))

    assert campaign["status"] == "draft"
    assert [s["type"] for s in campaign["sequences"]] == ["connection_request", "message"]
    assert [s["step_order"] for s in campaign["sequences"]] == [1, 2]


def test_create_campaign_validation(mock_db, mock_repo):
    service = make_service(mock_db, mock_repo)

    with pytest.raises(ValueError):
        asyncio.run(service.create_campaign({"name": "  "}))
    with pytest.raises(ValueError):
        asyncio.run(service.create_campaign({"name": "X", "template_id": "nope"}))


def test_duplicate_copies_steps_and_variants(mock_db, mock_repo):
    mock_repo.get_sequences = AsyncMock(return_value=[
        {"step_order": 1, "type": "connection_request", "delay_days": 0,
         "variants": [{"content": "Hi {firstName}", "weight": 60, "variant_name": "A", "is_active": True}]},
        {"step_order": 2, "type": "message", "delay_days": 3, "variants": []},
    ])
    service = make_service(mock_db, mock_repo)

    copy = asyncio.run(service.duplicate_campaign(1))

    assert copy["name"] == "Q3 founders (Copy)"
    assert copy["status"] == "draft"
    assert mock_repo.create_step.await_count == 2
    mock_repo.create_variant.assert_called_once_with(11, "Hi {firstName}", weight=60, variant_name="A", is_active=True)


def test_list_campaigns_adds_progress_and_is_cached(mock_db, mock_repo):
    mock_repo.list_campaigns = AsyncMock(return_value=[{"id": 1, "name": "A", "lead_count": 10}])
    mock_repo.get_lead_stats_for_campaigns = AsyncMock(return_value={1: {"completed": 3, "replied": 1, "pending": 6}})
    service = make_service(mock_db, mock_repo)

    first = asyncio.run(service.list_campaigns())
    second = asyncio.run(service.list_campaigns())

    assert first[0]["progress"] == 40
    assert first[0]["response_rate"] == 25
    assert second is first
    mock_repo.list_campaigns.assert_called_once()


# --- STEPS ---

def test_add_step_appends_after_last(mock_db, mock_repo):
    service = make_service(mock_db, mock_repo)

    step = asyncio.run(service.add_sequence_step(1, {"type": "message", "delay_days": -2, "content": "Hi"}))

    assert step["step_order"] == 3
    assert step["delay_days"] == 0
    assert step["variants"] == [{"id": 99, "content": "Hi"}]


def test_add_step_rejects_unknown_type(mock_db, mock_repo):
    with pytest.raises(ValueError):
        asyncio.run(make_service(mock_db, mock_repo).add_sequence_step(1, {"type": "fax"}))


def test_delete_step_renumbers_steps_and_cursors(mock_db, mock_repo):
    mock_repo.get_step_by_id = AsyncMock(return_value={"id": 12, "step_order": 2})
    mock_repo.delete_step = AsyncMock()
    mock_repo.shift_steps_down = AsyncMock()
    service = make_service(mock_db, mock_repo)

    result = asyncio.run(service.delete_sequence_step(1, 12))

    assert result == {"success": True, "deleted_step_order": 2}
    mock_repo.delete_step.assert_called_once_with(12)
    mock_repo.shift_steps_down.assert_called_once_with(1, 2)
    service.campaign_lead_repo.shift_steps_after.assert_called_once_with(1, 2)


# --- LEADS ---

def test_add_leads_skips_unknown_and_duplicates(mock_db, mock_repo):
    service = make_service(mock_db, mock_repo)
    service.lead_repo.get_leads_by_ids = AsyncMock(return_value=[{"id": 7}, {"id": 8}])

    result = asyncio.run(service.add_leads(1, [7, 8, 8, 404]))

    assert result == {"success": True, "added": 2, "skipped": 1}
    assert service.campaign_lead_repo.add_leads.call_args.args[1] == [7, 8]


def test_add_leads_warns_without_sequence(mock_db, mock_repo):
    mock_repo.get_step_orders = AsyncMock(return_value=[])
    service = make_service(mock_db, mock_repo)
    service.lead_repo.get_leads_by_ids = AsyncMock(return_value=[{"id": 7}])

    result = asyncio.run(service.add_leads(1, [7]))

    assert result["added"] == 1
    assert "warning" in result


# --- GENERATION ---

TWO_STEPS = [
    {"step_order": 1, "type": "connection_request", "delay_days": 0, "variants": []},
    {"step_order": 2, "type": "message", "delay_days": 3, "variants": []},
]


def test_generate_messages_queues_ai_copy(mock_db, mock_repo):
    mock_repo.get_sequences = AsyncMock(return_value=TWO_STEPS)
    mock_repo.get_campaign_leads = AsyncMock(return_value=[
        {"lead_id": 7, "first_name": "Ada", "linkedin_url": "https://www.linkedin.com/in/ada", "current_step": 1},
        {"lead_id": 8, "first_name": "Bob", "linkedin_url": "", "current_step": 1},
        {"lead_id": 9, "first_name": "Cy", "linkedin_url": "https://www.linkedin.com/in/cy", "pending_approval": True},
    ])
    ai = MagicMock()
    ai.is_configured = MagicMock(return_value=True)
    ai.generate_connection_request = AsyncMock(return_value="Hi Ada!")
    approvals = MagicMock()
    approvals.add_to_queue = AsyncMock()
    service = make_service(mock_db, mock_repo, ai=ai, approvals=approvals)

    with patch("app.modules.campaign_outreach.services.campaign_service.GENERATION_DELAY_SECONDS", 0):
        result = asyncio.run(service.generate_messages(1, step_type="connection_request"))

    assert result["generated"] == 1
    assert result["total"] == 3
    assert {s["reason"] for s in result["skipped"]} == {"no_linkedin_url", "pending_approval"}
    approvals.add_to_queue.assert_called_once_with(1, 7, "connection_request", "Hi Ada!", step_order=1)


def test_generate_messages_skips_leads_on_another_step(mock_db, mock_repo):
    mock_repo.get_sequences = AsyncMock(return_value=TWO_STEPS)
    mock_repo.get_campaign_leads = AsyncMock(return_value=[
        {"lead_id": 7, "first_name": "Ada", "linkedin_url": "https://www.linkedin.com/in/ada", "current_step": 1},
        {"lead_id": 8, "first_name": "Bob", "linkedin_url": "https://www.linkedin.com/in/bob", "current_step": 2},
    ])
    ai = MagicMock()
    ai.is_configured = MagicMock(return_value=True)
    ai.generate_follow_up_message = AsyncMock(return_value="Follow up")
    approvals = MagicMock()
    approvals.add_to_queue = AsyncMock()
    service = make_service(mock_db, mock_repo, ai=ai, approvals=approvals)

    with patch("app.modules.campaign_outreach.services.campaign_service.GENERATION_DELAY_SECONDS", 0):
        result = asyncio.run(service.generate_messages(1, step_type="message"))

    assert result["generated"] == 1
    assert result["skipped"] == [{"lead_id": 7, "reason": "step_mismatch"}]
    approvals.add_to_queue.assert_called_once_with(1, 8, "message", "Follow up", step_order=2)


def test_generate_messages_rejects_email_steps(mock_db, mock_repo):
    with pytest.raises(ValueError):
        asyncio.run(make_service(mock_db, mock_repo).generate_messages(1, step_type="email"))


def test_generate_messages_without_leads(mock_db, mock_repo):
    with pytest.raises(InvalidStateError):
        asyncio.run(make_service(mock_db, mock_repo).generate_messages(1, step_type="message"))
