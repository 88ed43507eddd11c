"""
Approval Queue Repository
All database operations for the 'approval_queue' table.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.base import model_to_dict
from app.modules.campaign_outreach.models.approval_queue import ApprovalQueueItem
from app.modules.campaign_outreach.models.campaign import Campaign
from app.modules.campaign_outreach.models.lead import Lead
from app.modules.campaign_outreach.constants import ApprovalStatus


class ApprovalRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_by_id(self, item_id: int) -> Optional[dict]:
        result = await self.db.execute(select(ApprovalQueueItem).where(ApprovalQueueItem.id == item_id))
        return model_to_dict(result.scalar_one_or_none())

    async def get_by_ids(self, item_ids: List[int]) -> List[dict]:
        if not item_ids:
            return []
        result = await self.db.execute(select(ApprovalQueueItem).where(ApprovalQueueItem.id.in_(item_ids)))
        return [model_to_dict(item) for item in result.scalars().all()]

    async def get_pending_for_pair(self, campaign_id: int, lead_id: int) -> Optional[dict]:
        """The single pending item for (campaign, lead), if any."""
        query = select(ApprovalQueueItem).where(
            ApprovalQueueItem.campaign_id == campaign_id,
            ApprovalQueueItem.lead_id == lead_id,
            ApprovalQueueItem.status == ApprovalStatus.PENDING.value
        )
        result = await self.db.execute(query)
        return model_to_dict(result.scalars().first())

    async def get_latest_for_step(
        self,
        campaign_id: int,
        lead_id: int,
        step_type: str,
        step_order: Optional[int] = None
    ) -> Optional[dict]:
        """
        Most recent item for (campaign, lead, step_type).
        When step_order is given, items generated for another step are ignored
        (a sequence can contain two message steps).
        """
        query = select(ApprovalQueueItem).where(
            ApprovalQueueItem.campaign_id == campaign_id,
            ApprovalQueueItem.lead_id == lead_id,
            ApprovalQueueItem.step_type == step_type
        )
        if step_order is not None:
            query = query.where(
                (ApprovalQueueItem.step_order == step_order) | (ApprovalQueueItem.step_order.is_(None))
            )
        query = query.order_by(ApprovalQueueItem.created_at.desc(), ApprovalQueueItem.id.desc()).limit(1)
        result = await self.db.execute(query)
        return model_to_dict(result.scalars().first())

    async def get_pending_items(self, campaign_id: Optional[int] = None) -> List[dict]:
        """
        Pending items joined with lead and campaign display fields, oldest first.
        """
        query = (
            select(
                ApprovalQueueItem,
                Lead.first_name,
                Lead.last_name,
                Lead.company,
                Lead.title,
                Lead.linkedin_url,
                Campaign.name.label("campaign_name")
            )
            .join(Lead, Lead.id == ApprovalQueueItem.lead_id)
            .join(Campaign, Campaign.id == ApprovalQueueItem.campaign_id)
            .where(ApprovalQueueItem.status == ApprovalStatus.PENDING.value)
        )
        if campaign_id is not None:
            query = query.where(ApprovalQueueItem.campaign_id == campaign_id)
        query = query.order_by(ApprovalQueueItem.created_at.asc(), ApprovalQueueItem.id.asc())

        result = await self.db.execute(query)
        items = []
        for row in result.all():
            item = model_to_dict(row[0])
            item.update({
                "first_name": row.first_name,
                "last_name": row.last_name,
                "company": row.company,
                "title": row.title,
                "linkedin_url": row.linkedin_url,
                "campaign_name": row.campaign_name,
            })
            items.append(item)
        return items

    async def get_history(self, campaign_id: Optional[int] = None, limit: int = 100) -> List[dict]:
        """Resolved items, most recently reviewed first."""
        query = select(ApprovalQueueItem).where(ApprovalQueueItem.status != ApprovalStatus.PENDING.value)
        if campaign_id is not None:
            query = query.where(ApprovalQueueItem.campaign_id == campaign_id)
        query = query.order_by(ApprovalQueueItem.reviewed_at.desc().nullslast()).limit(limit)
        result = await self.db.execute(query)
        return [model_to_dict(item) for item in result.scalars().all()]

    # ============================================
    # WRITE OPERATIONS (NO COMMIT HERE)
    # ============================================

    async def create(
        self,
        campaign_id: int,
        lead_id: int,
        step_type: str,
        content: str,
        step_order: Optional[int] = None
    ) -> dict:
        item = ApprovalQueueItem(
            campaign_id=campaign_id,
            lead_id=lead_id,
            step_type=step_type,
            step_order=step_order,
            generated_content=content,
            status=ApprovalStatus.PENDING.value
        )
        self.db.add(item)
        await self.db.flush()
        await self.db.refresh(item)
        return model_to_dict(item)

    async def update_content(self, item_id: int, content: str) -> Optional[dict]:
        result = await self.db.execute(
            update(ApprovalQueueItem)
            .where(ApprovalQueueItem.id == item_id)
            .values(generated_content=content)
            .returning(ApprovalQueueItem)
        )
        return model_to_dict(result.scalar_one_or_none())

    async def resolve(
        self,
        item_id: int,
        status: str,
        reviewed_at: datetime,
        content: Optional[str] = None
    ) -> Optional[dict]:
        """
        Set the decision IF the item is still open (pending / edited).
        Returns None when another reviewer resolved it first.
        Content is only overwritten when provided.
        """
        values = {"status": status, "reviewed_at": reviewed_at}
        if content is not None:
            values["generated_content"] = content

        result = await self.db.execute(
            update(ApprovalQueueItem)
            .where(
                ApprovalQueueItem.id == item_id,
                ApprovalQueueItem.status.in_([ApprovalStatus.PENDING.value, ApprovalStatus.EDITED.value])
            )
            .values(**values)
            .returning(ApprovalQueueItem)
        )
        return model_to_dict(result.scalar_one_or_none())

    async def set_admin_feedback(self, item_id: int, feedback: str) -> None:
        await self.db.execute(
            update(ApprovalQueueItem)
            .where(ApprovalQueueItem.id == item_id)
            .values(admin_feedback=feedback)
        )
