"""
Outreach Service (Dispatcher)
Sends one approved LinkedIn action for one lead through PhantomBuster.

Flow (under the per-lead lock):
1. Unsupported step type          -> SendResult(unsupported_step)
2. Safety limiter veto            -> lead back to pending, due now; SendResult(limit_reached)
3. Lead / cursor / URL missing    -> SendResult(not_found | no_linkedin_url)
4. Current step is another type   -> lead back to pending, due now; SendResult(step_mismatch)
5. Cursor -> processing (committed, visible to other workers)
6. Provider call -> container id
7. Provider failure: 'failed' log, approval annotated, lead back to pending for the scheduler
8. Success: container id + quota row + 'sent' log committed, then the sequence advances.
   If that bookkeeping fails the launch still counts: the lead stays processing and
   the container id and quota row are retried on their own so the webhook can finish.

send_approved_lead_immediately() NEVER raises: the scheduler and the approval flow
call it in loops and one lead's failure must not abort the others.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.constants import MESSAGE_PREVIEW_CHARS
from app.shared.utils.json_utils import truncate_text
from app.modules.campaign_outreach.constants import (
    StepType,
    CampaignLeadStatus,
    LogEventType,
    LogAction,
    LogStatus,
    SendFailureReason,
)
from app.modules.campaign_outreach.repositories.lead_repository import LeadRepository
from app.modules.campaign_outreach.repositories.campaign_repository import CampaignRepository
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository
from app.modules.campaign_outreach.repositories.approval_repository import ApprovalRepository
from app.modules.campaign_outreach.repositories.automation_log_repository import AutomationLogRepository
from app.modules.campaign_outreach.services.safety_service import SafetyService
from app.modules.campaign_outreach.services.sequence_service import SequenceService
from app.modules.campaign_outreach.services.lead_locks import lead_locks
from app.modules.campaign_outreach.services.phantombuster_service import phantombuster_service, PhantomBusterError
from app.modules.campaign_outreach.services.message_csv_store import message_csv_store

logger = logging.getLogger("outreach_service")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SendResult:
    """Outcome of one dispatch. `reason` is set exactly when `sent` is False."""
    sent: bool
    reason: Optional[SendFailureReason] = None
    error: Optional[str] = None
    container_id: Optional[str] = None

    @classmethod
    def ok(cls, container_id: str) -> "SendResult":
        return cls(sent=True, container_id=container_id)

    @classmethod
    def failed(cls, reason: SendFailureReason, error: Optional[str] = None) -> "SendResult":
        return cls(sent=False, reason=reason, error=error)

    @property
    def retryable(self) -> bool:
        return self.reason is not None and SendFailureReason.is_retryable(self.reason)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"sent": self.sent}
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.error is not None:
            result["error"] = self.error
        if self.container_id is not None:
            result["container_id"] = self.container_id
        return result


class OutreachService:
    """
    Dispatcher for connection_request / message steps.
    Owns its transactions: each phase commits on its own so 'processing' is visible
    before the provider call and the container id is durable before advancing.
    """

    def __init__(
        self,
        db: AsyncSession,
        safety: Optional[SafetyService] = None,
        phantom=None,
        csv_store=None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db = db
        self.clock = clock
        self.lead_repo = LeadRepository(db)
        self.campaign_repo = CampaignRepository(db)
        self.campaign_lead_repo = CampaignLeadRepository(db)
        self.approval_repo = ApprovalRepository(db)
        self.log_repo = AutomationLogRepository(db)
        self.safety = safety or SafetyService(db, clock=clock)
        self.sequence = SequenceService(db, clock=clock)
        self.phantom = phantom or phantombuster_service
        self.csv_store = csv_store or message_csv_store

        # StepType -> provider call returning a container id
        self._senders = {
            StepType.CONNECTION_REQUEST: self._send_connection_request,
            StepType.MESSAGE: self._send_message,
        }

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
    # PUBLIC API
    # ============================================

    async def send_approved_lead_immediately(
        self,
        campaign_id: int,
        lead_id: int,
        step_type: str,
        content: Optional[str],
        approval_id: Optional[int] = None,
        triggered_by: str = "manual_approval"
    ) -> SendResult:
        step = StepType.parse(step_type)
        sender = self._senders.get(step)
        if sender is None:
            logger.info(f"⏭️ Skipping step_type '{step_type}' for lead {lead_id}: not a LinkedIn action")
            return SendResult.failed(SendFailureReason.UNSUPPORTED_STEP)

        try:
            async with lead_locks.hold(campaign_id, lead_id):
                return await self._dispatch(
                    campaign_id, lead_id, step, sender, content, approval_id, triggered_by
                )
        except Exception as e:
            logger.exception(f"❌ Unexpected dispatch error for lead {lead_id} (campaign {campaign_id}): {e}")
            return SendResult.failed(SendFailureReason.INTERNAL_ERROR, str(e))

    # ============================================
    # DISPATCH PHASES
    # ============================================

    async def _dispatch(
        self,
        campaign_id: int,
        lead_id: int,
        step: StepType,
        sender: Callable,
        content: Optional[str],
        approval_id: Optional[int],
        triggered_by: str
    ) -> SendResult:
        if not await self.safety.is_safe_to_proceed(step):
            logger.warning(f"🛑 Daily limit reached for {step.value}; lead {lead_id} left for the scheduler")
            async with self.transaction():
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, CampaignLeadStatus.PENDING.value, next_action_due=self.clock()
                )
            return SendResult.failed(SendFailureReason.LIMIT_REACHED)

        lead = await self.lead_repo.get_by_id(lead_id)
        cursor = await self.campaign_lead_repo.get(campaign_id, lead_id)
        if not lead or not cursor:
            logger.warning(f"⚠️ Lead {lead_id} or its campaign_lead row (campaign {campaign_id}) not found")
            return SendResult.failed(SendFailureReason.NOT_FOUND)
        if not lead.get("linkedin_url"):
            logger.warning(f"⚠️ Lead {lead_id} has no LinkedIn URL")
            return SendResult.failed(SendFailureReason.NO_LINKEDIN_URL)

        current_step = cursor.get("current_step") or 1
        sequence_step = await self.campaign_repo.get_step(campaign_id, current_step)
        expected_type = sequence_step.get("type") if sequence_step else None
        if expected_type != step.value:
            logger.warning(
                f"⚠️ Not sending {step.value} for lead {lead_id}: step {current_step} of campaign "
                f"{campaign_id} is {expected_type or 'missing'}"
            )
            async with self.transaction():
                if approval_id:
                    await self.approval_repo.set_admin_feedback(
                        approval_id, f"Not sent: lead is on step {current_step} ({expected_type or 'missing'})"
                    )
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, CampaignLeadStatus.PENDING.value, next_action_due=self.clock()
                )
            return SendResult.failed(SendFailureReason.STEP_MISMATCH)

        async with self.transaction():
            await self.campaign_lead_repo.update_status(
                campaign_id, lead_id, CampaignLeadStatus.PROCESSING.value
            )

        try:
            container_id = await sender(lead, content)
            if not container_id:
                raise PhantomBusterError("PhantomBuster returned no container id")
        except Exception as e:
            logger.error(f"❌ Failed to send {step.value} for lead {lead_id}: {e}")
            await self._record_failure(campaign_id, lead_id, step, str(e), approval_id, triggered_by)
            return SendResult.failed(SendFailureReason.PROVIDER_ERROR, str(e))

        logger.info(f"✅ {step.value} sent for lead {lead_id}. Container: {container_id}")

        try:
            async with self.transaction():
                await self._record_success(
                    campaign_id, lead_id, step, content, container_id, approval_id, triggered_by
                )
        except Exception as e:
            logger.error(
                f"❌ {step.value} launched for lead {lead_id} (container {container_id}) "
                f"but recording it failed: {e}. Lead left processing for the webhook"
            )
            await self._record_launch(campaign_id, lead_id, step, container_id)
            return SendResult.ok(container_id)

        # The send already happened: an advance failure is left to the webhook to repeat
        try:
            async with self.transaction():
                await self.sequence.advance_step(campaign_id, lead_id, current_step, container_id=container_id)
        except Exception as e:
            logger.error(f"❌ Sequence advance failed for lead {lead_id} after send: {e}")

        return SendResult.ok(container_id)

    async def _record_success(
        self,
        campaign_id: int,
        lead_id: int,
        step: StepType,
        content: Optional[str],
        container_id: str,
        approval_id: Optional[int],
        triggered_by: str
    ) -> None:
        now = self.clock()
        await self.campaign_lead_repo.set_container_id(campaign_id, lead_id, container_id, now)
        if approval_id:
            await self.approval_repo.set_admin_feedback(
                approval_id, f"Sent via PhantomBuster. Container: {container_id}"
            )
        await self.safety.log_action(
            step,
            {"lead_id": lead_id, "container_id": container_id},
            campaign_id=campaign_id,
            lead_id=lead_id
        )
        await self.log_repo.create_log(
            event_type=LogEventType.OUTREACH.value,
            action=LogAction.for_step(step).value,
            status=LogStatus.SENT.value,
            details={
                "container_id": container_id,
                "step_type": step.value,
                "message_preview": truncate_text(content, MESSAGE_PREVIEW_CHARS),
                "message_length": len(content or ""),
                "sent_at": now.isoformat(),
                "triggered_by": triggered_by,
            },
            campaign_id=campaign_id,
            lead_id=lead_id
        )

    async def _record_launch(
        self,
        campaign_id: int,
        lead_id: int,
        step: StepType,
        container_id: str
    ) -> None:
        """Container id and quota row for a launch whose full bookkeeping was rolled back."""
        try:
            async with self.transaction():
                await self.campaign_lead_repo.set_container_id(campaign_id, lead_id, container_id, self.clock())
        except Exception as e:
            logger.error(f"❌ Could not store container {container_id} for lead {lead_id}: {e}")

        try:
            async with self.transaction():
                await self.safety.log_action(
                    step,
                    {"lead_id": lead_id, "container_id": container_id},
                    campaign_id=campaign_id,
                    lead_id=lead_id
                )
        except Exception as e:
            logger.error(f"❌ Could not record {step.value} quota for lead {lead_id}: {e}")

    async def _record_failure(
        self,
        campaign_id: int,
        lead_id: int,
        step: StepType,
        error: str,
        approval_id: Optional[int],
        triggered_by: str
    ) -> None:
        try:
            async with self.transaction():
                await self.log_repo.create_log(
                    event_type=LogEventType.OUTREACH.value,
                    action=LogAction.for_step(step).value,
                    status=LogStatus.FAILED.value,
                    details={"error": error, "step_type": step.value, "triggered_by": triggered_by},
                    campaign_id=campaign_id,
                    lead_id=lead_id
                )
                if approval_id:
                    await self.approval_repo.set_admin_feedback(approval_id, f"Failed to send: {error}")
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, CampaignLeadStatus.PENDING.value
                )
        except Exception as e:
            logger.error(f"❌ Could not record send failure for lead {lead_id}: {e}")

    # ============================================
    # PROVIDER CALLS (keyed by StepType)
    # ============================================

    async def _send_connection_request(self, lead: Dict[str, Any], content: Optional[str]) -> str:
        result = await self.phantom.auto_connect([lead], content or None)
        return result.get("container_id")

    async def _send_message(self, lead: Dict[str, Any], content: Optional[str]) -> str:
        spreadsheet_url = self.csv_store.build_spreadsheet_url(lead["linkedin_url"], content or "")
        result = await self.phantom.send_message(lead, content or "", spreadsheet_url)
        return result.get("container_id")
