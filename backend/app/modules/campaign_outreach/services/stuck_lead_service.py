"""
Stuck Lead Service
Finds and repairs due campaign leads whose current_step has no sequence row.

The scheduler only picks leads it can join to a step, so these leads sit in
pending / ready_for_action forever. Resolutions:
- complete:          mark them completed
- remove:            delete them from the campaign
- create_sequences:  give step-less campaigns the default sequence, reset their leads to step 1
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, List, Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.campaign_outreach.constants import StuckLeadAction, DEFAULT_SEQUENCE_CONFIG
from app.modules.campaign_outreach.repositories.campaign_repository import CampaignRepository
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository

logger = logging.getLogger("stuck_lead_service")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StuckLeadService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.campaign_repo = CampaignRepository(db)
        self.campaign_lead_repo = CampaignLeadRepository(db)

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    async def find_stuck_leads(self, campaign_id: Optional[int] = None) -> List[dict]:
        return await self.campaign_lead_repo.find_stuck_leads(self.clock(), campaign_id)

    async def fix_stuck_leads(self, action: str, campaign_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Apply one resolution to every stuck lead (optionally within one campaign).
        Returns {"success", "action", "found", "fixed", ...}.
        """
        resolution = StuckLeadAction(action)
        stuck = await self.find_stuck_leads(campaign_id)
        if not stuck:
            logger.info("✅ No stuck leads found")
            return {"success": True, "action": resolution.value, "found": 0, "fixed": 0}

        row_ids = [row["id"] for row in stuck]
        now = self.clock()
        result: Dict[str, Any] = {"success": True, "action": resolution.value, "found": len(stuck)}

        async with self.transaction():
            if resolution == StuckLeadAction.COMPLETE:
                result["fixed"] = await self.campaign_lead_repo.complete_leads(row_ids, now)

            elif resolution == StuckLeadAction.REMOVE:
                result["fixed"] = await self.campaign_lead_repo.delete_leads(row_ids)

            else:
                campaign_ids = sorted({row["campaign_id"] for row in stuck})
                missing = await self.campaign_repo.get_campaign_ids_without_steps(campaign_ids)
                for target_id in missing:
                    for order, step in enumerate(DEFAULT_SEQUENCE_CONFIG, start=1):
                        await self.campaign_repo.create_step(target_id, {
                            "step_order": order,
                            "type": step["type"],
                            "delay_days": step["delay_days"],
                        })
                    logger.info(f"➕ Default sequence created for campaign {target_id}")

                # Only leads of campaigns that just received a sequence are reset
                affected = [row["id"] for row in stuck if row["campaign_id"] in set(missing)]
                result["campaigns_fixed"] = missing
                result["fixed"] = await self.campaign_lead_repo.reset_to_first_step(affected, now)

        logger.info(f"🔧 Stuck leads: {result['fixed']}/{len(stuck)} fixed with '{resolution.value}'")
        return result
