"""
Campaign Repository
Database operations for 'campaigns', 'sequences' and 'sequence_variants',
plus the read-side joins over 'campaign_leads' used by the campaign screens.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.base import model_to_dict
from app.modules.campaign_outreach.models.campaign import Campaign, Sequence, SequenceVariant
from app.modules.campaign_outreach.models.campaign_lead import CampaignLead
from app.modules.campaign_outreach.models.approval_queue import ApprovalQueueItem
from app.modules.campaign_outreach.models.lead import Lead
from app.modules.campaign_outreach.constants import ApprovalStatus


class CampaignRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # CAMPAIGNS - READ
    # ============================================

    async def get_by_id(self, campaign_id: int) -> Optional[dict]:
        result = await self.db.execute(select(Campaign).where(Campaign.id == campaign_id))
        return model_to_dict(result.scalar_one_or_none())

    async def list_campaigns(self, status: Optional[str] = None) -> List[dict]:
        """All campaigns (newest first) with their total lead count."""
        lead_count = (
            select(func.count(CampaignLead.id))
            .where(CampaignLead.campaign_id == Campaign.id)
            .correlate(Campaign)
            .scalar_subquery()
        )
        query = select(Campaign, lead_count.label("lead_count"))
        if status:
            query = query.where(Campaign.status == status)
        query = query.order_by(Campaign.created_at.desc(), Campaign.id.desc())

        result = await self.db.execute(query)
        campaigns = []
        for row in result.all():
            campaign = model_to_dict(row[0])
            campaign["lead_count"] = row.lead_count or 0
            campaigns.append(campaign)
        return campaigns

    async def get_lead_stats(self, campaign_id: int) -> Dict[str, int]:
        """Lead counts per campaign_leads.status, plus 'total'."""
        query = (
            select(CampaignLead.status, func.count(CampaignLead.id))
            .where(CampaignLead.campaign_id == campaign_id)
            .group_by(CampaignLead.status)
        )
        result = await self.db.execute(query)
        stats = {status: count for status, count in result.all()}
        stats["total"] = sum(stats.values())
        return stats

    async def get_lead_stats_for_campaigns(self, campaign_ids: List[int]) -> Dict[int, Dict[str, int]]:
        """Per-status lead counts for many campaigns in one query."""
        if not campaign_ids:
            return {}
        query = (
            select(CampaignLead.campaign_id, CampaignLead.status, func.count(CampaignLead.id))
            .where(CampaignLead.campaign_id.in_(campaign_ids))
            .group_by(CampaignLead.campaign_id, CampaignLead.status)
        )
        result = await self.db.execute(query)
        stats: Dict[int, Dict[str, int]] = {}
        for campaign_id, status, count in result.all():
            stats.setdefault(campaign_id, {})[status] = count
        return stats

    async def count_leads(self, campaign_id: int) -> int:
        result = await self.db.execute(
            select(func.count(CampaignLead.id)).where(CampaignLead.campaign_id == campaign_id)
        )
        return result.scalar() or 0

    async def get_campaign_leads(self, campaign_id: int) -> List[dict]:
        """
        Campaign leads joined with their lead fields and the pending approval (if any).
        """
        query = (
            select(
                CampaignLead,
                Lead.first_name,
                Lead.last_name,
                Lead.full_name,
                Lead.company,
                Lead.title,
                Lead.email,
                Lead.linkedin_url,
                ApprovalQueueItem.id.label("approval_id"),
                ApprovalQueueItem.generated_content.label("approval_content"),
            )
            .join(Lead, Lead.id == CampaignLead.lead_id)
            .outerjoin(
                ApprovalQueueItem,
                (ApprovalQueueItem.campaign_id == CampaignLead.campaign_id)
                & (ApprovalQueueItem.lead_id == CampaignLead.lead_id)
                & (ApprovalQueueItem.status == ApprovalStatus.PENDING.value)
            )
            .where(CampaignLead.campaign_id == campaign_id)
            .order_by(CampaignLead.id.asc())
        )
        result = await self.db.execute(query)

        leads = []
        for row in result.all():
            lead = model_to_dict(row[0])
            lead.update({
                "first_name": row.first_name,
                "last_name": row.last_name,
                "full_name": row.full_name,
                "company": row.company,
                "title": row.title,
                "email": row.email,
                "linkedin_url": row.linkedin_url,
                "pending_approval": (
                    {"id": row.approval_id, "generated_content": row.approval_content}
                    if row.approval_id else None
                ),
            })
            leads.append(lead)
        return leads

    # ============================================
    # CAMPAIGNS - WRITE (NO COMMIT HERE)
    # ============================================

    async def create(self, data: Dict[str, Any]) -> dict:
        campaign = Campaign(**data)
        self.db.add(campaign)
        await self.db.flush()
        await self.db.refresh(campaign)
        return model_to_dict(campaign)

    async def update(self, campaign_id: int, data: Dict[str, Any]) -> Optional[dict]:
        if not data:
            return await self.get_by_id(campaign_id)
        result = await self.db.execute(
            update(Campaign).where(Campaign.id == campaign_id).values(**data).returning(Campaign)
        )
        return model_to_dict(result.scalar_one_or_none())

    async def update_status(
        self,
        campaign_id: int,
        status: str,
        launched_at: Optional[datetime] = None
    ) -> Optional[dict]:
        values = {"status": status}
        if launched_at is not None:
            values["launched_at"] = launched_at
        return await self.update(campaign_id, values)

    async def delete(self, campaign_id: int) -> bool:
        """Hard delete; FK cascades remove steps, variants, campaign leads and approvals."""
        result = await self.db.execute(
            delete(Campaign).where(Campaign.id == campaign_id).returning(Campaign.id)
        )
        return result.first() is not None

    # ============================================
    # SEQUENCES - READ
    # ============================================

    async def get_sequences(self, campaign_id: int) -> List[dict]:
        """Steps ordered by step_order, each with its variants."""
        result = await self.db.execute(
            select(Sequence).where(Sequence.campaign_id == campaign_id).order_by(Sequence.step_order)
        )
        steps = [model_to_dict(step) for step in result.scalars().all()]
        if not steps:
            return steps

        variants = await self.get_variants_for_steps([step["id"] for step in steps])
        for step in steps:
            step["variants"] = variants.get(step["id"], [])
        return steps

    async def get_step(self, campaign_id: int, step_order: int) -> Optional[dict]:
        """The sequence row at an exact step_order."""
        result = await self.db.execute(
            select(Sequence).where(Sequence.campaign_id == campaign_id, Sequence.step_order == step_order)
        )
        return model_to_dict(result.scalar_one_or_none())

    async def get_step_by_id(self, campaign_id: int, step_id: int) -> Optional[dict]:
        result = await self.db.execute(
            select(Sequence).where(Sequence.campaign_id == campaign_id, Sequence.id == step_id)
        )
        return model_to_dict(result.scalar_one_or_none())

    async def has_step_after(self, campaign_id: int, step_order: int) -> bool:
        """True if any step exists beyond step_order (used to detect gaps)."""
        result = await self.db.execute(
            select(func.count(Sequence.id)).where(
                Sequence.campaign_id == campaign_id,
                Sequence.step_order > step_order
            )
        )
        return (result.scalar() or 0) > 0

    async def get_step_orders(self, campaign_id: int) -> List[int]:
        result = await self.db.execute(
            select(Sequence.step_order).where(Sequence.campaign_id == campaign_id).order_by(Sequence.step_order)
        )
        return [row[0] for row in result.all()]

    async def get_campaign_ids_without_steps(self, campaign_ids: List[int]) -> List[int]:
        if not campaign_ids:
            return []
        result = await self.db.execute(
            select(Sequence.campaign_id).where(Sequence.campaign_id.in_(campaign_ids)).distinct()
        )
        with_steps = {row[0] for row in result.all()}
        return [campaign_id for campaign_id in campaign_ids if campaign_id not in with_steps]

    async def get_variants_for_steps(self, sequence_ids: List[int]) -> Dict[int, List[dict]]:
        if not sequence_ids:
            return {}
        result = await self.db.execute(
            select(SequenceVariant)
            .where(SequenceVariant.sequence_id.in_(sequence_ids))
            .order_by(SequenceVariant.id)
        )
        grouped: Dict[int, List[dict]] = {}
        for variant in result.scalars().all():
            grouped.setdefault(variant.sequence_id, []).append(model_to_dict(variant))
        return grouped

    async def get_active_variants(self, sequence_id: int) -> List[dict]:
        result = await self.db.execute(
            select(SequenceVariant).where(
                SequenceVariant.sequence_id == sequence_id,
                SequenceVariant.is_active.is_(True)
            )
        )
        return [model_to_dict(variant) for variant in result.scalars().all()]

    # ============================================
    # SEQUENCES - WRITE (NO COMMIT HERE)
    # ============================================

    async def create_step(self, campaign_id: int, data: Dict[str, Any]) -> dict:
        step = Sequence(campaign_id=campaign_id, **data)
        self.db.add(step)
        await self.db.flush()
        await self.db.refresh(step)
        return model_to_dict(step)

    async def update_step(self, step_id: int, data: Dict[str, Any]) -> Optional[dict]:
        result = await self.db.execute(
            update(Sequence).where(Sequence.id == step_id).values(**data).returning(Sequence)
        )
        return model_to_dict(result.scalar_one_or_none())

    async def delete_step(self, step_id: int) -> None:
        await self.db.execute(delete(Sequence).where(Sequence.id == step_id))

    async def shift_steps_down(self, campaign_id: int, after_step: int) -> None:
        """Renumber every step past after_step down by one (closes the gap left by a delete)."""
        await self.db.execute(
            update(Sequence)
            .where(Sequence.campaign_id == campaign_id, Sequence.step_order > after_step)
            .values(step_order=Sequence.step_order - 1)
        )

    async def create_variant(
        self,
        sequence_id: int,
        content: str,
        weight: int = 100,
        variant_name: Optional[str] = None,
        is_active: bool = True
    ) -> dict:
        variant = SequenceVariant(
            sequence_id=sequence_id,
            content=content,
            weight=weight,
            variant_name=variant_name,
            is_active=is_active
        )
        self.db.add(variant)
        await self.db.flush()
        return model_to_dict(variant)
