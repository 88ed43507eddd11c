"""
Email Service (SendGrid)
Email steps of a sequence and LinkedIn failover emails.

Talks to the SendGrid v3 REST API (POST /mail/send) over the shared httpx client.
Returns {success, error?} dicts; only a missing recipient raises.
"""
import html
import logging
from typing import Dict, Any, Optional

import httpx

from app.shared.core.config import settings
from app.shared.core.constants import SENDGRID_API_URL, TIMEOUT_SENDGRID
from app.shared.utils.http_client import http_client_manager
from app.modules.campaign_outreach.services.ai_service import ai_service

logger = logging.getLogger("email_service")


class EmailService:
    def __init__(self, client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None):
        self._client = client
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.sender = settings.SENDER_EMAIL

        if not self.api_key:
            logger.warning("⚠️ Email Service: SENDGRID_API_KEY not configured")

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or http_client_manager.get_client()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send_email(self, to: str, subject: str, text: str, html_body: Optional[str] = None) -> Dict[str, Any]:
        if not to:
            raise ValueError("Recipient email address is required")
        if not self.is_configured():
            logger.warning("⚠️ Email not sent - no provider configured")
            return {"success": False, "error": "No email provider configured"}

        if html_body is None:
            html_body = "<p>" + html.escape(text).replace("\n", "<br>") + "</p>"

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html_body},
            ],
        }

        try:
            response = await self.client.post(
                f"{SENDGRID_API_URL}/mail/send",
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                json=payload,
                timeout=TIMEOUT_SENDGRID
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ SendGrid request failed: {e}")
            return {"success": False, "error": f"SendGrid failed: {e}"}

        if response.status_code >= 400:
            logger.error(f"❌ SendGrid error {response.status_code}: {response.text}")
            return {"success": False, "error": f"SendGrid failed ({response.status_code})"}

        logger.info(f"✅ Email sent to {to} via sendgrid")
        return {
            "success": True,
            "provider": "sendgrid",
            "message_id": response.headers.get("X-Message-Id"),
        }

    async def send_failover_email(self, lead: Dict[str, Any], campaign_id: int) -> Dict[str, Any]:
        """
        AI-written follow-up email for a lead.
        Never raises; the caller records the outcome in automation_logs.
        """
        email = lead.get("email")
        if not email:
            return {"success": False, "error": "Lead has no email address"}

        logger.info(f"📧 Sending failover email to lead {lead.get('id')} (campaign {campaign_id})")
        body = await ai_service.generate_email_failover(lead)
        subject = f"Following up - {lead.get('first_name') or 'there'}"

        try:
            result = await self.send_email(email, subject, body)
        except Exception as e:
            logger.error(f"❌ Failover email error: {e}")
            return {"success": False, "error": str(e)}

        return {**result, "subject": subject, "email": email}


# Singleton instance
email_service = EmailService()
