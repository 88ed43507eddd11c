"""
Automation Log Repository
Append-only writes and aggregate reads over 'automation_logs'.

The safety limiter counts its quota from this table, so quota rows are
written only for dispatches that actually reached the provider.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.base import model_to_dict
from app.modules.campaign_outreach.models.automation_log import AutomationLog
from app.modules.campaign_outreach.constants import LogEventType


class AutomationLogRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # WRITE OPERATIONS (NO COMMIT HERE)
    # ============================================

    async def create_log(
        self,
        event_type: Optional[str] = None,
        action: Optional[str] = None,
        status: Optional[str] = None,
        details: Optional[dict] = None,
        campaign_id: Optional[int] = None,
        lead_id: Optional[int] = None
    ) -> dict:
        """Append one audit row."""
        log = AutomationLog(
            campaign_id=campaign_id,
            lead_id=lead_id,
            event_type=event_type,
            action=action,
            status=status,
            details=details or {}
        )
        self.db.add(log)
        await self.db.flush()
        return model_to_dict(log)

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def count_launches_since(self, step_type: str, since: datetime) -> int:
        """
        Count quota entries (event_type='phantom_launched') of one step type
        created after `since`.
        """
        query = (
            select(func.count())
            .select_from(AutomationLog)
            .where(
                AutomationLog.event_type == LogEventType.PHANTOM_LAUNCHED.value,
                AutomationLog.details["step_type"].astext == step_type,
                AutomationLog.created_at > since
            )
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def get_for_campaign(self, campaign_id: int, limit: int = 100) -> List[dict]:
        """Most recent log rows for a campaign."""
        query = (
            select(AutomationLog)
            .where(AutomationLog.campaign_id == campaign_id)
            .order_by(AutomationLog.created_at.desc(), AutomationLog.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [model_to_dict(row) for row in result.scalars().all()]
