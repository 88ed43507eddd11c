"""
PhantomBuster webhook handling, including the approve -> send -> callback round trip.
"""
import asyncio
from datetime import timedelta
from unittest.mock import MagicMock, AsyncMock

from app.modules.campaign_outreach.constants import CampaignLeadStatus, LogEventType
from app.modules.campaign_outreach.services.safety_service import SafetyService
from app.modules.campaign_outreach.services.outreach_service import OutreachService
from app.modules.campaign_outreach.services.approval_service import ApprovalService
from app.modules.campaign_outreach.services.webhook_service import WebhookService, is_successful_run


def make_webhooks(store, mock_db):
    return store.wire(WebhookService(mock_db, clock=store.clock))


def test_is_successful_run():
    assert is_successful_run("success", 0) is True
    assert is_successful_run("finished", "0") is True
    assert is_successful_run("error", 0) is False
    assert is_successful_run("success", 1) is False
    assert is_successful_run("success", None) is False


def test_unknown_container_is_logged_and_ignored(store, mock_db):
    store.add_step(1, 1, "message")
    store.add_cursor(1, 7, last_container_id="known-1")
    before = dict(store.cursors[(1, 7)])

    result = asyncio.run(make_webhooks(store, mock_db).handle_phantombuster_event(
        {"containerId": "unknown-9", "status": "success", "exitCode": 0}
    ))

    assert result == {"matched": False}
    received = store.logs_of(LogEventType.WEBHOOK_RECEIVED.value)
    assert len(received) == 1
    assert received[0]["details"]["containerId"] == "unknown-9"
    assert len(store.logs) == 1
    assert store.cursors[(1, 7)] == before


def test_payload_without_container_id_is_only_logged(store, mock_db):
    result = asyncio.run(make_webhooks(store, mock_db).handle_phantombuster_event({"status": "success"}))

    assert result == {"matched": False}
    assert len(store.logs_of(LogEventType.WEBHOOK_RECEIVED.value)) == 1


def test_successful_run_advances_when_dispatcher_did_not(store, mock_db):
    store.add_step(1, 1, "connection_request")
    store.add_step(1, 2, "message", delay_days=2)
    store.add_cursor(1, 7, status=CampaignLeadStatus.PROCESSING.value, last_container_id="c-1")

    result = asyncio.run(make_webhooks(store, mock_db).handle_phantombuster_event(
        {"containerId": "c-1", "status": "success", "exitCode": 0}
    ))

    assert result["action"] == "advanced"
    cursor = store.cursors[(1, 7)]
    assert cursor["current_step"] == 2
    assert cursor["status"] == CampaignLeadStatus.PENDING.value
    assert cursor["next_action_due"] == store.now + timedelta(days=2)
    assert cursor["advanced_container_id"] == "c-1"


def test_failed_run_marks_lead_failed(store, mock_db):
    store.add_step(1, 1, "connection_request")
    store.add_step(1, 2, "message", delay_days=2)
    store.add_cursor(1, 7, status=CampaignLeadStatus.PROCESSING.value, last_container_id="c-1")

    result = asyncio.run(make_webhooks(store, mock_db).handle_phantombuster_event(
        {"containerId": "c-1", "status": "error", "exitCode": 1}
    ))

    assert result == {"matched": True, "action": "failed"}
    cursor = store.cursors[(1, 7)]
    assert cursor["status"] == CampaignLeadStatus.FAILED.value
    assert cursor["current_step"] == 1
    assert cursor["last_activity_at"] == store.now


def test_processing_error_is_swallowed(mock_db):
    async def test_logic():
        service = WebhookService(mock_db)
        service.log_repo = MagicMock()
        service.log_repo.create_log = AsyncMock()
        service.campaign_lead_repo = MagicMock()
        service.campaign_lead_repo.get_by_container_id = AsyncMock(side_effect=RuntimeError("db down"))

        result = await service.handle_phantombuster_event({"containerId": "c-1", "status": "success", "exitCode": 0})

        assert result["matched"] is True
        assert "db down" in result["error"]
        service.log_repo.create_log.assert_called_once()

    asyncio.run(test_logic())


def test_approve_send_then_late_webhook_is_a_no_op(store, mock_db, sample_lead):
    """
    Approve "Hi!" for step 1 -> container abc123 -> lead at step 2 due in 3 days.
    The container-finished callback that follows must neither advance again
    nor complete the lead.
    """
    store.add_lead(sample_lead)
    store.add_step(1, 1, "message")
    store.add_step(1, 2, "message", delay_days=3)
    store.add_step(1, 3, "message", delay_days=4)
    store.add_cursor(1, 7, status=CampaignLeadStatus.NEEDS_APPROVAL.value)
    item = store.add_approval(1, 7, "message", "Hi!", step_order=1)

    phantom = MagicMock()
    phantom.send_message = AsyncMock(return_value={"success": True, "container_id": "abc123"})
    csv_store = MagicMock()
    csv_store.build_spreadsheet_url = MagicMock(return_value="https://crm.example.com/csv/t")
    safety = SafetyService(mock_db, limits={"message": 50}, window=timedelta(hours=24), clock=store.clock)
    dispatcher = OutreachService(mock_db, safety=safety, phantom=phantom, csv_store=csv_store, clock=store.clock)
    approvals = store.wire(ApprovalService(mock_db, dispatcher=dispatcher, clock=store.clock))
    webhooks = make_webhooks(store, mock_db)

    async def test_logic():
        decision = await approvals.process_item(item["id"], "approve")
        assert decision["send_result"]["container_id"] == "abc123"

        after_send = dict(store.cursors[(1, 7)])
        assert after_send["current_step"] == 2
        assert after_send["status"] == CampaignLeadStatus.PENDING.value
        assert after_send["next_action_due"] == store.now + timedelta(days=3)

        store.now = store.now + timedelta(minutes=5)
        callback = await webhooks.handle_phantombuster_event(
            {"containerId": "abc123", "status": "success", "exitCode": 0}
        )
        assert callback == {"matched": True, "action": "already_advanced"}
        assert store.cursors[(1, 7)] == after_send

    asyncio.run(test_logic())

    phantom.send_message.assert_called_once()
    assert len(store.quota_rows("message")) == 1
    assert len(store.logs_of(LogEventType.WEBHOOK_RECEIVED.value)) == 1
