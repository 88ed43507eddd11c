"""
Approval Service
Human review gate between generated content and LinkedIn outreach.

- add_to_queue is idempotent per (campaign, lead): an existing pending item is returned.
- Approving a connection_request / message item dispatches it immediately.
  Approval and delivery are decoupled: a failed send never reverts the approval,
  the lead is handed back to the scheduler instead.
- Rejecting has no effect on the CampaignLead (it stays parked in needs_approval).
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, List, Dict, Any, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.utils.exceptions import (
    EntityNotFoundError,
    InvalidStateError,
    ConcurrentModificationError,
)
from app.modules.campaign_outreach.constants import (
    ApprovalAction,
    ApprovalStatus,
    CampaignLeadStatus,
    StepType,
)
from app.modules.campaign_outreach.repositories.approval_repository import ApprovalRepository
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository
from app.modules.campaign_outreach.services.outreach_service import OutreachService

logger = logging.getLogger("approval_service")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalService:
    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[OutreachService] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db = db
        self.clock = clock
        self.repo = ApprovalRepository(db)
        self.campaign_lead_repo = CampaignLeadRepository(db)
        self.dispatcher = dispatcher or OutreachService(db, clock=clock)

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    # ============================================
    # QUEUE
    # ============================================

    async def add_to_queue(
        self,
        campaign_id: int,
        lead_id: int,
        step_type: str,
        content: str,
        step_order: Optional[int] = None
    ) -> dict:
        """Create a pending item, or return the one already pending for this pair."""
        existing = await self.repo.get_pending_for_pair(campaign_id, lead_id)
        if existing:
            logger.debug(f"Pending approval {existing['id']} already exists for lead {lead_id}")
            return existing

        try:
            async with self.transaction():
                item = await self.repo.create(campaign_id, lead_id, step_type, content, step_order)
        except IntegrityError:
            # Lost the race against a concurrent insert; the partial unique index kept one row
            winner = await self.repo.get_pending_for_pair(campaign_id, lead_id)
            if winner is None:
                raise
            return winner

        logger.info(f"📝 Queued {step_type} for approval: lead {lead_id}, campaign {campaign_id}")
        return item

    async def get_pending_items(self, campaign_id: Optional[int] = None) -> List[dict]:
        return await self.repo.get_pending_items(campaign_id)

    async def get_history(self, campaign_id: Optional[int] = None, limit: int = 100) -> List[dict]:
        return await self.repo.get_history(campaign_id, limit)

    async def get_item(self, item_id: int) -> dict:
        item = await self.repo.get_by_id(item_id)
        if not item:
            raise EntityNotFoundError("ApprovalQueueItem", item_id)
        return item

    async def edit_content(self, item_id: int, content: str) -> dict:
        """Replace the generated content. The item stays pending."""
        item = await self.get_item(item_id)
        if not ApprovalStatus.is_open(item["status"]):
            raise InvalidStateError(f"Approval {item_id} is already {item['status']}")

        async with self.transaction():
            updated = await self.repo.update_content(item_id, content)
        return updated

    # ============================================
    # DECISIONS
    # ============================================

    async def process_item(
        self,
        item_id: int,
        action: str,
        modified_content: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Approve or reject one item.
        Returns {"item": <resolved item>, "send_result": {...} | None}.
        """
        decision = ApprovalAction(action)
        item = await self.get_item(item_id)
        if not ApprovalStatus.is_open(item["status"]):
            raise InvalidStateError(f"Approval {item_id} is already {item['status']}")

        status = ApprovalStatus.APPROVED if decision == ApprovalAction.APPROVE else ApprovalStatus.REJECTED
        async with self.transaction():
            resolved = await self.repo.resolve(
                item_id,
                status.value,
                reviewed_at=self.clock(),
                content=modified_content if decision == ApprovalAction.APPROVE else None
            )
        if resolved is None:
            raise ConcurrentModificationError("ApprovalQueueItem", item_id)

        logger.info(f"{'✅' if status == ApprovalStatus.APPROVED else '🚫'} Approval {item_id} {status.value}")

        send_result = None
        if status == ApprovalStatus.APPROVED:
            send_result = await self._deliver(resolved)
        return {"item": resolved, "send_result": send_result}

    async def bulk_approve(self, item_ids: List[int]) -> Dict[str, Any]:
        return await self._bulk(item_ids, ApprovalAction.APPROVE)

    async def bulk_reject(self, item_ids: List[int]) -> Dict[str, Any]:
        return await self._bulk(item_ids, ApprovalAction.REJECT)

    async def _bulk(self, item_ids: List[int], action: ApprovalAction) -> Dict[str, Any]:
        """
        Only pending items are processed; each one independently so a single
        failure does not block the batch.
        """
        items = await self.repo.get_by_ids(item_ids)
        pending_ids = [item["id"] for item in items if item["status"] == ApprovalStatus.PENDING.value]

        processed = []
        errors = []
        for item_id in pending_ids:
            try:
                processed.append(await self.process_item(item_id, action.value))
            except Exception as e:
                logger.error(f"Bulk {action.value} failed for approval {item_id}: {e}")
                errors.append({"id": item_id, "error": str(e)})

        return {
            "success": True,
            "processed": len(processed),
            "skipped": len(item_ids) - len(pending_ids),
            "items": processed,
            "errors": errors,
        }

    async def _deliver(self, item: dict) -> Optional[dict]:
        """
        LinkedIn items are sent now; other types are made due for the scheduler.
        Never raises.
        """
        campaign_id, lead_id = item["campaign_id"], item["lead_id"]

        if not StepType.requires_approval(StepType.parse(item["step_type"])):
            await self._requeue(campaign_id, lead_id)
            return None

        try:
            result = await self.dispatcher.send_approved_lead_immediately(
                campaign_id,
                lead_id,
                item["step_type"],
                item["generated_content"],
                approval_id=item["id"]
            )
            return result.to_dict()
        except Exception as e:
            logger.error(f"❌ Outreach send on approve failed for lead {lead_id}: {e}")
            await self._requeue(campaign_id, lead_id)
            return {"sent": False, "error": str(e)}

    async def _requeue(self, campaign_id: int, lead_id: int) -> None:
        try:
            async with self.transaction():
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, CampaignLeadStatus.PENDING.value, next_action_due=self.clock()
                )
        except Exception as e:
            logger.error(f"❌ Could not hand lead {lead_id} back to the scheduler: {e}")
