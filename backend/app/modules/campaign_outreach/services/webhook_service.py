"""
Webhook Service
Handles PhantomBuster container-finished callbacks.

1. The raw event is ALWAYS logged (webhook_received), matched or not.
2. The CampaignLead is found by last_container_id (the only correlation key).
3. status != 'error' and exitCode == 0 -> completed + sequence advance, else failed.
4. Unknown containers (manual runs etc.) are logged and ignored.

Nothing here raises to the router: PhantomBuster re-delivers on any non-200.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.campaign_outreach.constants import CampaignLeadStatus, LogEventType
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository
from app.modules.campaign_outreach.repositories.automation_log_repository import AutomationLogRepository
from app.modules.campaign_outreach.services.sequence_service import SequenceService
from app.modules.campaign_outreach.services.lead_locks import lead_locks

logger = logging.getLogger("webhook_service")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_successful_run(status: Optional[str], exit_code: Any) -> bool:
    if status == "error":
        return False
    try:
        return int(exit_code) == 0
    except (TypeError, ValueError):
        return False


class WebhookService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.campaign_lead_repo = CampaignLeadRepository(db)
        self.log_repo = AutomationLogRepository(db)
        self.sequence = SequenceService(db, clock=clock)

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    async def handle_phantombuster_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        container_id = payload.get("containerId")
        container_id = str(container_id) if container_id not in (None, "") else None
        status = payload.get("status")
        exit_code = payload.get("exitCode")

        logger.info(f"📬 PhantomBuster webhook: container={container_id} status={status} exitCode={exit_code}")

        try:
            async with self.transaction():
                await self.log_repo.create_log(
                    event_type=LogEventType.WEBHOOK_RECEIVED.value,
                    status=status,
                    details={
                        "containerId": container_id,
                        "status": status,
                        "exitCode": exit_code,
                        "phantomId": payload.get("phantomId") or payload.get("agentId"),
                    }
                )
        except Exception as e:
            logger.error(f"❌ Could not log webhook for container {container_id}: {e}")

        if not container_id:
            return {"matched": False}

        try:
            return await self._apply(container_id, is_successful_run(status, exit_code))
        except Exception as e:
            logger.exception(f"❌ Webhook processing failed for container {container_id}: {e}")
            return {"matched": True, "error": str(e)}

    async def _apply(self, container_id: str, success: bool) -> Dict[str, Any]:
        match = await self.campaign_lead_repo.get_by_container_id(container_id)
        if not match:
            logger.info(f"Webhook for untracked container {container_id}, ignoring")
            return {"matched": False}

        campaign_id, lead_id = match["campaign_id"], match["lead_id"]

        async with lead_locks.hold(campaign_id, lead_id):
            # Re-read under the lock: the dispatcher may have advanced meanwhile
            cursor = await self.campaign_lead_repo.get(campaign_id, lead_id)
            if not cursor or cursor.get("last_container_id") != container_id:
                logger.info(f"Container {container_id} is no longer the latest for lead {lead_id}, ignoring")
                return {"matched": False}

            if success and cursor.get("advanced_container_id") == container_id:
                logger.info(f"Lead {lead_id} already advanced for container {container_id}, nothing to do")
                return {"matched": True, "action": "already_advanced"}

            new_status = CampaignLeadStatus.COMPLETED if success else CampaignLeadStatus.FAILED
            async with self.transaction():
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, new_status.value, touch_activity=True, now=self.clock()
                )
            logger.info(f"Lead {lead_id} (campaign {campaign_id}) -> {new_status.value} via webhook")

            if not success:
                return {"matched": True, "action": CampaignLeadStatus.FAILED.value}

            try:
                async with self.transaction():
                    advance = await self.sequence.advance_step(
                        campaign_id, lead_id, cursor["current_step"], container_id=container_id
                    )
            except Exception as e:
                logger.error(f"❌ Advance after webhook failed for lead {lead_id}: {e}")
                return {"matched": True, "action": "completed", "advance_error": str(e)}

        return {"matched": True, "action": "advanced", "advance": advance}
