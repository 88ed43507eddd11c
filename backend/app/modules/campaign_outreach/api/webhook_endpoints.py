"""
PhantomBuster API Endpoints
- POST /webhooks/phantombuster: container-finished callback
- GET  /phantom/message-csv/{token}: one-row CSV the message-sender agent downloads
"""
import hmac
import logging
from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.config import settings
from app.shared.db.session import get_db
from app.shared.utils.json_utils import safe_json_parse
from app.modules.campaign_outreach.services.webhook_service import WebhookService
from app.modules.campaign_outreach.services.message_csv_store import message_csv_store
from app.modules.campaign_outreach.schemas.campaign_schemas import WebhookResponse

router = APIRouter()
logger = logging.getLogger("phantombuster_api")


# ============================================
# WEBHOOK SECURITY
# ============================================

def verify_webhook_secret(provided: str, secret: str) -> bool:
    """
    Compare the caller's secret with PHANTOMBUSTER_WEBHOOK_SECRET.
    No configured secret means verification is skipped.
    """
    if not secret:
        return True

    if not provided:
        logger.warning("⚠️ PhantomBuster webhook received without a secret")
        return False

    if provided.startswith("Bearer "):
        provided = provided[7:]

    # Constant-time comparison to prevent timing attacks
    return hmac.compare_digest(provided, secret)


def _provided_secret(request: Request) -> str:
    # PhantomBuster webhooks are plain URLs, so the query string is accepted too
    return (
        request.headers.get("X-Webhook-Secret")
        or request.headers.get("Authorization")
        or request.query_params.get("secret")
        or ""
    )


# ============================================
# WEBHOOK ENDPOINT
# ============================================

@router.post("/webhooks/phantombuster", response_model=WebhookResponse)
async def phantombuster_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle PhantomBuster container-finished events.

    Payload: {containerId, status, exitCode, phantomId?, ...}

    Always answers 200 {"received": true} once authenticated: processing problems
    are logged, never reported back (PhantomBuster would just re-deliver).
    """
    if not verify_webhook_secret(_provided_secret(request), settings.PHANTOMBUSTER_WEBHOOK_SECRET):
        logger.warning("🚫 PhantomBuster webhook rejected: invalid secret")
        raise HTTPException(status_code=401, detail="Invalid webhook authentication")

    payload = safe_json_parse(await request.body(), default={})
    if not isinstance(payload, dict):
        payload = {}

    result = await WebhookService(db).handle_phantombuster_event(payload)
    logger.debug(f"Webhook result: {result}")
    return WebhookResponse(received=True)


# ============================================
# MESSAGE CSV HAND-OFF
# ============================================

@router.get("/phantom/message-csv/{token}", response_class=PlainTextResponse)
async def get_message_csv(token: str):
    """Serve the LinkedInUrl,Message CSV registered under token (404 once expired)."""
    body = message_csv_store.render_csv(token)
    if body is None:
        raise HTTPException(status_code=404, detail="CSV not found or expired")
    return PlainTextResponse(content=body, media_type="text/csv")
