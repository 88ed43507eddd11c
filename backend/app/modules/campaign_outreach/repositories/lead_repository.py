"""
Lead Repository
Read access to the CRM 'leads' table for the campaign state machine.
"""
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.base import model_to_dict
from app.modules.campaign_outreach.models.lead import Lead


class LeadRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_id(self, lead_id: int) -> Optional[dict]:
        """Fetch a single lead by ID."""
        result = await self.db.execute(select(Lead).where(Lead.id == lead_id))
        return model_to_dict(result.scalar_one_or_none())

    async def get_leads_by_ids(self, lead_ids: List[int]) -> List[dict]:
        """
        Fetch multiple leads in a SINGLE query (avoids N+1 in bulk operations).
        """
        if not lead_ids:
            return []

        result = await self.db.execute(select(Lead).where(Lead.id.in_(lead_ids)))
        return [model_to_dict(lead) for lead in result.scalars().all()]
