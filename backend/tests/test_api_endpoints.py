"""
HTTP surface: routing, status-code mapping of domain errors, webhook auth
and the message CSV hand-off. Services are mocked; no database is touched.
"""
from unittest.mock import MagicMock, AsyncMock, patch

import pytest

from app.main import app
from app.shared.core.config import settings
from app.shared.db.session import get_db
from app.shared.utils.exceptions import (
    EntityNotFoundError,
    InvalidStateError,
    SequenceValidationError,
    ConcurrentModificationError,
)
from app.modules.campaign_outreach.api.webhook_endpoints import verify_webhook_secret
from app.modules.campaign_outreach.services.message_csv_store import message_csv_store

API = settings.API_V1_STR
ENDPOINTS = "app.modules.campaign_outreach.api"


@pytest.fixture(autouse=True)
def override_db():
    async def fake_db():
        yield MagicMock()

    app.dependency_overrides[get_db] = fake_db
    yield
    app.dependency_overrides.pop(get_db, None)


def test_root_reports_scheduler_status(test_client):
    response = test_client.get("/")

    assert response.status_code == 200
    assert "scheduler" in response.json()
    assert response.json()["scheduler"]["running"] is False


def test_correlation_id_is_echoed(test_client):
    response = test_client.get("/", headers={"X-Request-ID": "req-test-1"})

    assert response.headers.get("X-Request-ID") == "req-test-1"


# --- WEBHOOK SECRET ---

def test_verify_webhook_secret():
    assert verify_webhook_secret("", "") is True
    assert verify_webhook_secret("anything", "") is True
    assert verify_webhook_secret("", "s3cret") is False
    assert verify_webhook_secret("wrong", "s3cret") is False
    assert verify_webhook_secret("s3cret", "s3cret") is True
    assert verify_webhook_secret("Bearer s3cret", "s3cret") is True


def test_webhook_accepts_payload_and_always_answers_received(test_client):
    with patch(f"{ENDPOINTS}.webhook_endpoints.WebhookService") as mock_cls:
        mock_cls.return_value.handle_phantombuster_event = AsyncMock(return_value={"matched": False})
        response = test_client.post(
            f"{API}/webhooks/phantombuster",
            json={"containerId": "abc123", "status": "success", "exitCode": 0}
        )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    payload = mock_cls.return_value.handle_phantombuster_event.call_args.args[0]
    assert payload["containerId"] == "abc123"


def test_webhook_with_invalid_body_still_answers(test_client):
    with patch(f"{ENDPOINTS}.webhook_endpoints.WebhookService") as mock_cls:
        mock_cls.return_value.handle_phantombuster_event = AsyncMock(return_value={"matched": False})
        response = test_client.post(
            f"{API}/webhooks/phantombuster",
            content=b"not json",
            headers={"Content-Type": "application/json"}
        )

    assert response.status_code == 200
    assert mock_cls.return_value.handle_phantombuster_event.call_args.args[0] == {}


def test_webhook_secret_enforced_when_configured(test_client):
    with patch.object(settings, "PHANTOMBUSTER_WEBHOOK_SECRET", "s3cret"), \
         patch(f"{ENDPOINTS}.webhook_endpoints.WebhookService") as mock_cls:
        mock_cls.return_value.handle_phantombuster_event = AsyncMock(return_value={"matched": False})

        rejected = test_client.post(f"{API}/webhooks/phantombuster", json={"containerId": "1"})
        by_header = test_client.post(
            f"{API}/webhooks/phantombuster", json={"containerId": "1"}, headers={"X-Webhook-Secret": "s3cret"}
        )
        by_query = test_client.post(f"{API}/webhooks/phantombuster?secret=s3cret", json={"containerId": "1"})

    assert rejected.status_code == 401
    assert by_header.status_code == 200
    assert by_query.status_code == 200
    assert mock_cls.return_value.handle_phantombuster_event.await_count == 2


# --- MESSAGE CSV ---

def test_message_csv_served_as_text_csv(test_client):
    token = message_csv_store.create_token("https://www.linkedin.com/in/ada", "Hi Ada")

    response = test_client.get(f"{API}/phantom/message-csv/{token}")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text == '"LinkedInUrl","Message"\n"https://www.linkedin.com/in/ada","Hi Ada"\n'
    message_csv_store.remove(token)


def test_message_csv_unknown_token_is_404(test_client):
    response = test_client.get(f"{API}/phantom/message-csv/msg_0_missing")

    assert response.status_code == 404


# --- DOMAIN ERRORS -> STATUS CODES ---

@pytest.mark.parametrize("error, status", [
    (EntityNotFoundError("Campaign", 404), 404),
    (InvalidStateError("Campaign 1 is active and cannot be launched"), 400),
    (SequenceValidationError(1, "gap", missing_steps=[2]), 400),
    (ConcurrentModificationError("Campaign", 1), 409),
    (ValueError("bad input"), 400),
])
def test_domain_errors_map_to_status(test_client, error, status):
    with patch(f"{ENDPOINTS}.campaign_endpoints.CampaignService") as mock_cls:
        mock_cls.return_value.launch_campaign = AsyncMock(side_effect=error)
        response = test_client.post(f"{API}/campaigns/1/launch")

    assert response.status_code == status
    assert "detail" in response.json()


def test_sequence_validation_error_lists_missing_steps(test_client):
    with patch(f"{ENDPOINTS}.campaign_endpoints.CampaignService") as mock_cls:
        mock_cls.return_value.launch_campaign = AsyncMock(
            side_effect=SequenceValidationError(1, "gap", missing_steps=[2, 4])
        )
        response = test_client.post(f"{API}/campaigns/1/launch")

    assert response.json()["missing_steps"] == [2, 4]


# --- CAMPAIGN ROUTES ---

def test_create_campaign_returns_201(test_client):
    with patch(f"{ENDPOINTS}.campaign_endpoints.CampaignService") as mock_cls:
        mock_cls.return_value.create_campaign = AsyncMock(return_value={"id": 1, "name": "Q3", "status": "draft"})
        response = test_client.post(f"{API}/campaigns", json={"name": "Q3", "template_id": "default-connections"})

    assert response.status_code == 201
    assert mock_cls.return_value.create_campaign.call_args.args[0] == {
        "name": "Q3", "template_id": "default-connections"
    }


def test_create_campaign_requires_name(test_client):
    response = test_client.post(f"{API}/campaigns", json={})

    assert response.status_code == 422


def test_add_sequence_step_rejects_unknown_type(test_client):
    response = test_client.post(f"{API}/campaigns/1/sequences", json={"type": "fax"})

    assert response.status_code == 422


def test_sequence_validation_route(test_client):
    with patch(f"{ENDPOINTS}.campaign_endpoints.CampaignService") as mock_cls:
        mock_cls.return_value.validate_sequence = AsyncMock(
            return_value={"contiguous": False, "step_orders": [1, 3], "missing": [2]}
        )
        response = test_client.get(f"{API}/campaigns/1/sequence-validation")

    assert response.json() == {"contiguous": False, "step_orders": [1, 3], "missing": [2]}


# --- APPROVAL ROUTES ---

def test_approve_route_returns_send_result(test_client):
    with patch(f"{ENDPOINTS}.approval_endpoints.ApprovalService") as mock_cls:
        mock_cls.return_value.process_item = AsyncMock(return_value={
            "item": {"id": 5, "status": "approved"},
            "send_result": {"sent": False, "reason": "limit_reached"},
        })
        response = test_client.post(f"{API}/approvals/5/approve", json={"modified_content": "Edited"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["send_result"]["reason"] == "limit_reached"
    assert mock_cls.return_value.process_item.call_args.args == (5, "approve", "Edited")


def test_approve_route_without_body(test_client):
    with patch(f"{ENDPOINTS}.approval_endpoints.ApprovalService") as mock_cls:
        mock_cls.return_value.process_item = AsyncMock(return_value={"item": {"id": 5}, "send_result": None})
        response = test_client.post(f"{API}/approvals/5/approve")

    assert response.status_code == 200
    assert mock_cls.return_value.process_item.call_args.args == (5, "approve", None)


def test_bulk_reject_route(test_client):
    with patch(f"{ENDPOINTS}.approval_endpoints.ApprovalService") as mock_cls:
        mock_cls.return_value.bulk_reject = AsyncMock(return_value={
            "success": True, "processed": 2, "skipped": 0, "items": [], "errors": []
        })
        response = test_client.post(f"{API}/approvals/bulk-reject", json={"ids": [1, 2]})

    assert response.status_code == 200
    mock_cls.return_value.bulk_reject.assert_called_once_with([1, 2])


# --- OPERATIONS ---

def test_fix_stuck_leads_validates_action(test_client):
    response = test_client.post(f"{API}/stuck-leads/fix", json={"action": "explode"})

    assert response.status_code == 422


def test_scheduler_status_includes_safety_usage(test_client):
    with patch(f"{ENDPOINTS}.operations_endpoints.SafetyService") as mock_cls:
        mock_cls.return_value.get_status = AsyncMock(return_value={
            "message": {"used": 3, "limit": 50, "remaining": 47}
        })
        response = test_client.get(f"{API}/scheduler/status")

    assert response.status_code == 200
    assert response.json()["safety"]["message"]["remaining"] == 47
