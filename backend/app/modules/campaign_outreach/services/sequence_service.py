"""
Sequence Service (Advancer)
Moves a CampaignLead from a finished step to the next one, or completes it.

Rules:
- Next step = the sequence row at step_order = current_step + 1.
- Found:  status pending, current_step + 1, next_action_due = now + next_step.delay_days.
- Absent: status completed, next_action_due NULL (terminal).

IDEMPOTENCY:
- The cursor update is a compare-and-set on current_step, so a caller holding a stale
  current_step (e.g. the webhook after the dispatcher already advanced) changes nothing.
- When a container id is given it is stored in advanced_container_id; advancing again
  for the same container is a no-op.

The service does not commit. The caller's transaction does.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.campaign_outreach.constants import (
    CampaignLeadStatus,
    LogEventType,
    LogAction,
    LogStatus,
)
from app.modules.campaign_outreach.repositories.campaign_repository import CampaignRepository
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository
from app.modules.campaign_outreach.repositories.automation_log_repository import AutomationLogRepository

logger = logging.getLogger("sequence_service")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SequenceService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.campaign_repo = CampaignRepository(db)
        self.campaign_lead_repo = CampaignLeadRepository(db)
        self.log_repo = AutomationLogRepository(db)

    async def advance_step(
        self,
        campaign_id: int,
        lead_id: int,
        current_step: int,
        container_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Advance the cursor past current_step.

        Returns:
            {"success": True, "status": "pending", "current_step": n+1, "next_action_due": ...}
            {"success": True, "status": "completed", "current_step": n}
            {"success": False, "reason": "already_advanced" | "stale_step"}
        """
        if container_id:
            cursor = await self.campaign_lead_repo.get(campaign_id, lead_id)
            if cursor and cursor.get("advanced_container_id") == container_id:
                logger.info(
                    f"Lead {lead_id} (campaign {campaign_id}) already advanced for container {container_id}"
                )
                return {"success": False, "reason": "already_advanced"}

        now = self.clock()
        next_order = current_step + 1
        next_step = await self.campaign_repo.get_step(campaign_id, next_order)

        if next_step is None:
            return await self._complete(campaign_id, lead_id, current_step, container_id, now)

        delay_days = max(next_step.get("delay_days") or 0, 0)
        next_action_due = now + timedelta(days=delay_days)

        updated = await self.campaign_lead_repo.advance_to_step(
            campaign_id=campaign_id,
            lead_id=lead_id,
            expected_step=current_step,
            next_step=next_order,
            next_action_due=next_action_due,
            now=now,
            container_id=container_id
        )
        if not updated:
            return self._stale(campaign_id, lead_id, current_step, container_id)

        logger.info(
            f"➡️ Lead {lead_id} (campaign {campaign_id}) advanced to step {next_order}, "
            f"due in {delay_days} day(s)"
        )
        return {
            "success": True,
            "status": CampaignLeadStatus.PENDING.value,
            "current_step": next_order,
            "next_action_due": next_action_due,
        }

    async def _complete(
        self,
        campaign_id: int,
        lead_id: int,
        current_step: int,
        container_id: Optional[str],
        now: datetime
    ) -> Dict[str, Any]:
        updated = await self.campaign_lead_repo.complete_sequence(
            campaign_id=campaign_id,
            lead_id=lead_id,
            expected_step=current_step,
            now=now,
            container_id=container_id
        )
        if not updated:
            return self._stale(campaign_id, lead_id, current_step, container_id)

        # No row at current_step + 1 but a later one exists: the lead completes early
        if await self.campaign_repo.has_step_after(campaign_id, current_step + 1):
            logger.warning(
                f"⚠️ Sequence gap in campaign {campaign_id}: no step {current_step + 1}, "
                f"lead {lead_id} completed before reaching later steps"
            )
            await self.log_repo.create_log(
                event_type=LogEventType.SEQUENCE.value,
                action=LogAction.SEQUENCE_GAP.value,
                status=LogStatus.WARNING.value,
                details={"missing_step": current_step + 1, "completed_at_step": current_step},
                campaign_id=campaign_id,
                lead_id=lead_id
            )
        else:
            logger.info(f"🏁 Lead {lead_id} (campaign {campaign_id}) completed the sequence")

        return {
            "success": True,
            "status": CampaignLeadStatus.COMPLETED.value,
            "current_step": current_step,
        }

    def _stale(self, campaign_id: int, lead_id: int, current_step: int, container_id: Optional[str]) -> Dict[str, Any]:
        logger.info(
            f"Lead {lead_id} (campaign {campaign_id}) is no longer at step {current_step} "
            f"(container={container_id}); advance skipped"
        )
        return {"success": False, "reason": "stale_step"}
