"""
OpenAI copy generation (client mocked) and SendGrid email over httpx.MockTransport.
"""
import asyncio
import json
from unittest.mock import MagicMock, AsyncMock, patch

import httpx
import pytest

from app.modules.campaign_outreach.services.ai_service import AIService, fit_to_length
from app.modules.campaign_outreach.services.email_service import EmailService


def make_openai_client(text):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = text
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


# --- AI SERVICE ---

def test_connection_request_is_greeted_and_capped(sample_lead):
    client = make_openai_client("Loved your work on engines. " * 30)
    service = AIService(client=client)

    note = asyncio.run(service.generate_connection_request(sample_lead, {"goal": "connections"}))

    assert note.startswith("Hi Ada, ")
    assert len(note) <= 300
    prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert "Analytical Engines" in prompt
    assert "Goal: connections" in prompt


def test_generation_failure_returns_fallback(sample_lead):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=RuntimeError("rate limited"))
    service = AIService(client=client)

    message = asyncio.run(service.generate_follow_up_message(sample_lead))

    assert message == "Hi Ada, following up on my previous message. Would love to connect!"


def test_unconfigured_service_uses_fallbacks(sample_lead):
    with patch("app.modules.campaign_outreach.services.ai_service.settings") as mock_settings:
        mock_settings.OPENAI_API_KEY = ""
        mock_settings.OPENAI_MODEL = "gpt-4o-mini"
        service = AIService()

    assert service.is_configured() is False
    note = asyncio.run(service.generate_connection_request(sample_lead))
    assert note.startswith("Hi Ada")
    with pytest.raises(ValueError):
        asyncio.run(service.generate("prompt"))


def test_fit_to_length_cuts_at_sentence_boundary():
    message = "First sentence. Second sentence is longer. Third."

    assert fit_to_length(message, 100) == message
    assert fit_to_length(message, 30) == "First sentence...."
    assert len(fit_to_length("x" * 50, 20)) == 20


# --- EMAIL SERVICE ---

def make_email_service(handler, api_key="sg-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailService(client=client, api_key=api_key)


def test_send_email_posts_sendgrid_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(202, headers={"X-Message-Id": "sg-1"})

    result = asyncio.run(make_email_service(handler).send_email("ada@example.com", "Hello", "Line 1\nLine <2>"))

    assert result == {"success": True, "provider": "sendgrid", "message_id": "sg-1"}
    assert seen["url"] == "https://api.sendgrid.com/v3/mail/send"
    assert seen["auth"] == "Bearer sg-key"
    assert seen["body"]["personalizations"] == [{"to": [{"email": "ada@example.com"}]}]
    assert seen["body"]["content"][1]["value"] == "<p>Line 1<br>Line &lt;2&gt;</p>"


def test_send_email_reports_provider_error():
    service = make_email_service(lambda request: httpx.Response(401, text="unauthorized"))

    result = asyncio.run(service.send_email("ada@example.com", "Hello", "Body"))

    assert result["success"] is False
    assert "401" in result["error"]


def test_send_email_requires_recipient_and_key():
    service = make_email_service(lambda request: httpx.Response(202), api_key="")

    with pytest.raises(ValueError):
        asyncio.run(service.send_email("", "Hello", "Body"))
    assert asyncio.run(service.send_email("ada@example.com", "Hello", "Body"))["success"] is False


def test_failover_email_without_address(sample_lead):
    service = make_email_service(lambda request: httpx.Response(202))

    result = asyncio.run(service.send_failover_email({**sample_lead, "email": None}, campaign_id=1))

    assert result == {"success": False, "error": "Lead has no email address"}


def test_failover_email_uses_generated_body(sample_lead):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(202)

    service = make_email_service(handler)
    with patch(
        "app.modules.campaign_outreach.services.email_service.ai_service.generate_email_failover",
        AsyncMock(return_value="Generated body")
    ):
        result = asyncio.run(service.send_failover_email(sample_lead, campaign_id=1))

    assert result["success"] is True
    assert result["subject"] == "Following up - Ada"
    assert bodies[0]["content"][0]["value"] == "Generated body"
