"""
Campaign Lead Repository
All database operations for the 'campaign_leads' table (the per-lead cursor).

COMPARE-AND-SET: Sequence advancement updates are conditioned on the
current_step the caller read, so two advancers racing on the same row
cannot both move it. The caller learns whether its write landed.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import select, update, delete, and_, or_, exists
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.base import model_to_dict
from app.modules.campaign_outreach.models.campaign_lead import CampaignLead
from app.modules.campaign_outreach.models.campaign import Campaign, Sequence
from app.modules.campaign_outreach.constants import CampaignLeadStatus, CampaignStatus

# Sentinel so callers can explicitly write NULL into next_action_due
_UNSET = object()


class CampaignLeadRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get(self, campaign_id: int, lead_id: int) -> Optional[dict]:
        query = select(CampaignLead).where(
            CampaignLead.campaign_id == campaign_id,
            CampaignLead.lead_id == lead_id
        )
        result = await self.db.execute(query)
        return model_to_dict(result.scalar_one_or_none())

    async def get_by_container_id(self, container_id: str) -> Optional[dict]:
        """
        Find the cursor whose latest dispatch produced this PhantomBuster container.
        If several rows somehow share it, the most recently touched one wins.
        """
        query = (
            select(CampaignLead)
            .where(CampaignLead.last_container_id == container_id)
            .order_by(CampaignLead.last_activity_at.desc().nullslast(), CampaignLead.id.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return model_to_dict(result.scalars().first())

    async def get_next_due_lead(self, now: datetime) -> Optional[dict]:
        """
        ONE due lead of an active campaign, joined to the sequence step at its current_step.

        Due means status in (pending, ready_for_action) and next_action_due is NULL or past.
        Leads whose current_step has no sequence row never match (see find_stuck_leads).
        """
        query = (
            select(
                CampaignLead,
                Sequence.id.label("sequence_id"),
                Sequence.type.label("step_type"),
                Sequence.delay_days.label("delay_days"),
            )
            .join(
                Sequence,
                and_(
                    Sequence.campaign_id == CampaignLead.campaign_id,
                    Sequence.step_order == CampaignLead.current_step
                )
            )
            .join(Campaign, Campaign.id == CampaignLead.campaign_id)
            .where(
                Campaign.status == CampaignStatus.ACTIVE.value,
                CampaignLead.status.in_(CampaignLeadStatus.due_statuses()),
                or_(CampaignLead.next_action_due.is_(None), CampaignLead.next_action_due <= now)
            )
            .order_by(CampaignLead.next_action_due.asc().nullsfirst(), CampaignLead.id.asc())
            .limit(1)
        )
        result = await self.db.execute(query)
        row = result.first()
        if row is None:
            return None

        due = model_to_dict(row[0])
        due.update({
            "sequence_id": row.sequence_id,
            "step_type": row.step_type,
            "delay_days": row.delay_days,
        })
        return due

    async def find_stuck_leads(self, now: datetime, campaign_id: Optional[int] = None) -> List[dict]:
        """
        Due leads whose current_step has no matching sequence row.
        The scheduler can never pick these up.
        """
        step_exists = exists().where(
            Sequence.campaign_id == CampaignLead.campaign_id,
            Sequence.step_order == CampaignLead.current_step
        )
        query = select(CampaignLead).where(
            CampaignLead.status.in_(CampaignLeadStatus.due_statuses()),
            or_(CampaignLead.next_action_due.is_(None), CampaignLead.next_action_due <= now),
            ~step_exists
        )
        if campaign_id is not None:
            query = query.where(CampaignLead.campaign_id == campaign_id)
        query = query.order_by(CampaignLead.campaign_id, CampaignLead.lead_id)

        result = await self.db.execute(query)
        return [model_to_dict(row) for row in result.scalars().all()]

    # ============================================
    # WRITE OPERATIONS (NO COMMIT HERE)
    # ============================================

    async def add_leads(self, campaign_id: int, lead_ids: List[int], now: datetime) -> List[int]:
        """
        Insert cursors at step 1, due now. Existing pairs are left untouched.
        Returns the lead IDs that were actually inserted.
        """
        if not lead_ids:
            return []

        rows = [
            {
                "campaign_id": campaign_id,
                "lead_id": lead_id,
                "status": CampaignLeadStatus.PENDING.value,
                "current_step": 1,
                "next_action_due": now,
            }
            for lead_id in lead_ids
        ]
        stmt = (
            pg_insert(CampaignLead)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["campaign_id", "lead_id"])
            .returning(CampaignLead.lead_id)
        )
        result = await self.db.execute(stmt)
        return [row[0] for row in result.all()]

    async def update_status(
        self,
        campaign_id: int,
        lead_id: int,
        status: str,
        next_action_due=_UNSET,
        touch_activity: bool = False,
        now: Optional[datetime] = None
    ) -> None:
        values = {"status": status}
        if next_action_due is not _UNSET:
            values["next_action_due"] = next_action_due
        if touch_activity:
            values["last_activity_at"] = now
        await self.db.execute(
            update(CampaignLead)
            .where(CampaignLead.campaign_id == campaign_id, CampaignLead.lead_id == lead_id)
            .values(**values)
        )

    async def set_container_id(self, campaign_id: int, lead_id: int, container_id: str, now: datetime) -> None:
        await self.db.execute(
            update(CampaignLead)
            .where(CampaignLead.campaign_id == campaign_id, CampaignLead.lead_id == lead_id)
            .values(last_container_id=container_id, last_activity_at=now)
        )

    async def advance_to_step(
        self,
        campaign_id: int,
        lead_id: int,
        expected_step: int,
        next_step: int,
        next_action_due: datetime,
        now: datetime,
        container_id: Optional[str] = None
    ) -> bool:
        """
        Move the cursor to next_step (status pending) IF it is still at expected_step.
        Returns True when the row was updated.
        """
        values = {
            "status": CampaignLeadStatus.PENDING.value,
            "current_step": next_step,
            "next_action_due": next_action_due,
            "last_activity_at": now,
        }
        if container_id is not None:
            values["advanced_container_id"] = container_id
        return await self._compare_and_set(campaign_id, lead_id, expected_step, container_id, values)

    async def complete_sequence(
        self,
        campaign_id: int,
        lead_id: int,
        expected_step: int,
        now: datetime,
        container_id: Optional[str] = None
    ) -> bool:
        """Mark the cursor completed IF it is still at expected_step."""
        values = {
            "status": CampaignLeadStatus.COMPLETED.value,
            "next_action_due": None,
            "last_activity_at": now,
        }
        if container_id is not None:
            values["advanced_container_id"] = container_id
        return await self._compare_and_set(campaign_id, lead_id, expected_step, container_id, values)

    async def _compare_and_set(
        self,
        campaign_id: int,
        lead_id: int,
        expected_step: int,
        container_id: Optional[str],
        values: dict
    ) -> bool:
        conditions = [
            CampaignLead.campaign_id == campaign_id,
            CampaignLead.lead_id == lead_id,
            CampaignLead.current_step == expected_step,
        ]
        if container_id is not None:
            conditions.append(CampaignLead.advanced_container_id.is_distinct_from(container_id))

        result = await self.db.execute(
            update(CampaignLead).where(*conditions).values(**values).returning(CampaignLead.id)
        )
        return result.first() is not None

    async def activate_for_launch(self, campaign_id: int, now: datetime) -> int:
        """Make every new / pending lead of the campaign due now. Returns the row count."""
        result = await self.db.execute(
            update(CampaignLead)
            .where(
                CampaignLead.campaign_id == campaign_id,
                CampaignLead.status.in_([CampaignLeadStatus.NEW.value, CampaignLeadStatus.PENDING.value])
            )
            .values(status=CampaignLeadStatus.PENDING.value, next_action_due=now)
            .returning(CampaignLead.id)
        )
        return len(result.all())

    async def shift_steps_after(self, campaign_id: int, deleted_step: int) -> None:
        """After a step is deleted, cursors past it follow the renumbered sequence."""
        await self.db.execute(
            update(CampaignLead)
            .where(CampaignLead.campaign_id == campaign_id, CampaignLead.current_step > deleted_step)
            .values(current_step=CampaignLead.current_step - 1)
        )

    async def complete_leads(self, row_ids: List[int], now: datetime) -> int:
        if not row_ids:
            return 0
        result = await self.db.execute(
            update(CampaignLead)
            .where(CampaignLead.id.in_(row_ids))
            .values(status=CampaignLeadStatus.COMPLETED.value, next_action_due=None, last_activity_at=now)
            .returning(CampaignLead.id)
        )
        return len(result.all())

    async def delete_leads(self, row_ids: List[int]) -> int:
        if not row_ids:
            return 0
        result = await self.db.execute(
            delete(CampaignLead).where(CampaignLead.id.in_(row_ids)).returning(CampaignLead.id)
        )
        return len(result.all())

    async def reset_to_first_step(self, row_ids: List[int], now: datetime) -> int:
        if not row_ids:
            return 0
        result = await self.db.execute(
            update(CampaignLead)
            .where(CampaignLead.id.in_(row_ids))
            .values(status=CampaignLeadStatus.PENDING.value, current_step=1, next_action_due=now)
            .returning(CampaignLead.id)
        )
        return len(result.all())
