"""
Scheduler Service
Sequential loop that moves due campaign leads through their sequence.

One tick = ONE lead:
1. Pick the most overdue lead of an active campaign whose current step exists.
2. Safety gate (throttled -> the loop backs off).
3. connection_request / message: needs an APPROVED item for this step.
   - none yet: queue the rendered step template for approval, lead -> needs_approval
   - approved: hand it to the dispatcher
4. email: sent directly, sequence advances whether or not the send worked.
5. Unknown step type: lead -> failed.

AI generation never happens here; it is an explicit operator action
(CampaignService.generate_messages). Outreach is never sent without approval.

SchedulerService holds the per-lead logic against one session (testable with mocks).
SchedulerLoop owns the asyncio task and opens a fresh session for every tick.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.config import settings
from app.shared.core.logging import set_correlation_id
from app.shared.db.session import AsyncSessionLocal
from app.modules.campaign_outreach.constants import (
    StepType,
    CampaignLeadStatus,
    ApprovalStatus,
    LogEventType,
    LogAction,
    LogStatus,
    SendFailureReason,
    TickOutcome,
)
from app.modules.campaign_outreach.repositories.lead_repository import LeadRepository
from app.modules.campaign_outreach.repositories.campaign_repository import CampaignRepository
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository
from app.modules.campaign_outreach.repositories.approval_repository import ApprovalRepository
from app.modules.campaign_outreach.repositories.automation_log_repository import AutomationLogRepository
from app.modules.campaign_outreach.services.safety_service import SafetyService
from app.modules.campaign_outreach.services.sequence_service import SequenceService
from app.modules.campaign_outreach.services.outreach_service import OutreachService
from app.modules.campaign_outreach.services.approval_service import ApprovalService
from app.modules.campaign_outreach.services.email_service import email_service
from app.modules.campaign_outreach.services.content_service import build_step_content
from app.modules.campaign_outreach.services.lead_locks import lead_locks

logger = logging.getLogger("scheduler_service")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerService:
    def __init__(
        self,
        db: AsyncSession,
        safety: Optional[SafetyService] = None,
        dispatcher: Optional[OutreachService] = None,
        mailer=None,
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
        self.dispatcher = dispatcher or OutreachService(db, safety=self.safety, clock=clock)
        self.approvals = ApprovalService(db, dispatcher=self.dispatcher, clock=clock)
        self.mailer = mailer or email_service

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    async def process_next_lead(self) -> TickOutcome:
        due = await self.campaign_lead_repo.get_next_due_lead(self.clock())
        if due is None:
            return TickOutcome.IDLE

        logger.info(
            f"⚡ Processing lead {due['lead_id']} (campaign {due['campaign_id']}) "
            f"-> step {due['current_step']} ({due['step_type']})"
        )
        return await self.execute_step(due)

    async def execute_step(self, due: Dict[str, Any]) -> TickOutcome:
        campaign_id, lead_id = due["campaign_id"], due["lead_id"]
        step = StepType.parse(due["step_type"])

        if step is None:
            logger.warning(f"⚠️ Unknown step_type '{due['step_type']}' for lead {lead_id}. Marking failed.")
            async with self.transaction():
                await self.campaign_lead_repo.update_status(campaign_id, lead_id, CampaignLeadStatus.FAILED.value)
            return TickOutcome.PROCESSED

        if not await self.safety.is_safe_to_proceed(step):
            logger.warning(f"🛑 [LIMIT REACHED] Skipping lead {lead_id} to protect account safety")
            return TickOutcome.THROTTLED

        if step == StepType.EMAIL:
            await self._run_email_step(due)
            return TickOutcome.PROCESSED

        return await self._run_linkedin_step(due, step)

    # ============================================
    # LINKEDIN STEPS (approval gated)
    # ============================================

    async def _run_linkedin_step(self, due: Dict[str, Any], step: StepType) -> TickOutcome:
        campaign_id, lead_id = due["campaign_id"], due["lead_id"]
        current_step = due["current_step"]

        item = await self.approval_repo.get_latest_for_step(
            campaign_id, lead_id, step.value, step_order=current_step
        )

        if not item or item["status"] != ApprovalStatus.APPROVED.value:
            async with lead_locks.hold(campaign_id, lead_id):
                if not item:
                    await self._queue_template_content(due, step)
                logger.info(f"✋ Admin approval required for lead {lead_id}, step {current_step}")
                async with self.transaction():
                    await self.campaign_lead_repo.update_status(
                        campaign_id, lead_id, CampaignLeadStatus.NEEDS_APPROVAL.value
                    )
            return TickOutcome.PROCESSED

        result = await self.dispatcher.send_approved_lead_immediately(
            campaign_id,
            lead_id,
            step.value,
            item["generated_content"],
            approval_id=item["id"],
            triggered_by="scheduler"
        )
        if result.sent:
            return TickOutcome.PROCESSED
        if result.reason == SendFailureReason.LIMIT_REACHED:
            return TickOutcome.THROTTLED
        if result.reason == SendFailureReason.STEP_MISMATCH:
            # Cursor moved since this tick read it; the dispatcher already made it due again
            return TickOutcome.PROCESSED

        await self._after_failed_send(campaign_id, lead_id, result.reason)
        return TickOutcome.PROCESSED

    async def _queue_template_content(self, due: Dict[str, Any], step: StepType) -> None:
        """Render the step's template (no AI) and put it in front of a human."""
        lead = await self.lead_repo.get_by_id(due["lead_id"]) or {}
        variants = await self.campaign_repo.get_active_variants(due["sequence_id"])
        content = build_step_content(variants, lead)
        await self.approvals.add_to_queue(
            due["campaign_id"], due["lead_id"], step.value, content, step_order=due["current_step"]
        )

    async def _after_failed_send(self, campaign_id: int, lead_id: int, reason: SendFailureReason) -> None:
        """
        Retryable failures wait SCHEDULER_RETRY_DELAY_SECONDS before the next attempt.
        Precondition failures (missing lead / URL) will not fix themselves: lead -> failed.
        """
        if SendFailureReason.is_retryable(reason):
            retry_at = self.clock() + timedelta(seconds=settings.SCHEDULER_RETRY_DELAY_SECONDS)
            async with self.transaction():
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, CampaignLeadStatus.PENDING.value, next_action_due=retry_at
                )
            logger.info(f"🔁 Lead {lead_id} will be retried at {retry_at.isoformat()} ({reason.value})")
        else:
            async with self.transaction():
                await self.campaign_lead_repo.update_status(campaign_id, lead_id, CampaignLeadStatus.FAILED.value)
            logger.warning(f"⚠️ Lead {lead_id} marked failed: {reason.value if reason else 'unknown'}")

    # ============================================
    # EMAIL STEP (no approval gate)
    # ============================================

    async def _run_email_step(self, due: Dict[str, Any]) -> None:
        campaign_id, lead_id = due["campaign_id"], due["lead_id"]

        async with lead_locks.hold(campaign_id, lead_id):
            async with self.transaction():
                await self.campaign_lead_repo.update_status(
                    campaign_id, lead_id, CampaignLeadStatus.PROCESSING.value
                )

            lead = await self.lead_repo.get_by_id(lead_id) or {"id": lead_id}
            logger.info(f"📨 Triggering email failover for lead {lead_id}")
            try:
                result = await self.mailer.send_failover_email(lead, campaign_id)
            except Exception as e:
                result = {"success": False, "error": str(e)}

            async with self.transaction():
                if result.get("success"):
                    await self.safety.log_action(
                        StepType.EMAIL, {"lead_id": lead_id}, campaign_id=campaign_id, lead_id=lead_id
                    )
                await self.log_repo.create_log(
                    event_type=LogEventType.OUTREACH.value,
                    action=LogAction.EMAIL_FAILOVER.value,
                    status=LogStatus.SUCCESS.value if result.get("success") else LogStatus.FAILED.value,
                    details={
                        "email": lead.get("email"),
                        "subject": result.get("subject"),
                        "provider": result.get("provider"),
                        "error": result.get("error"),
                    },
                    campaign_id=campaign_id,
                    lead_id=lead_id
                )
                # Email failures do not block the sequence
                await self.sequence.advance_step(campaign_id, lead_id, due["current_step"])

            if result.get("success"):
                logger.info(f"✅ Failover email sent for lead {lead_id}")
            else:
                logger.error(f"❌ Failover email failed for lead {lead_id}: {result.get('error')}")


class SchedulerLoop:
    """
    Background task driving SchedulerService: no delay between processed leads,
    idle polling when nothing is due, a longer back-off when the limiter vetoes.
    """

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self.last_tick_at: Optional[datetime] = None
        self.last_outcome: Optional[TickOutcome] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name="campaign-scheduler")
        logger.info("🚀 Scheduler: starting sequential processing loop")

    async def stop(self) -> None:
        self._stopping = True
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")

    async def tick(self) -> TickOutcome:
        set_correlation_id(prefix="tick")
        async with self._session_factory() as db:
            outcome = await SchedulerService(db).process_next_lead()
        self.ticks += 1
        self.last_tick_at = utc_now()
        self.last_outcome = outcome
        return outcome

    async def _run(self) -> None:
        while not self._stopping:
            try:
                outcome = await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"❌ Scheduler loop error: {e}")
                await asyncio.sleep(settings.SCHEDULER_ERROR_BACKOFF_SECONDS)
                continue

            if outcome == TickOutcome.IDLE:
                await asyncio.sleep(settings.SCHEDULER_IDLE_POLL_SECONDS)
            elif outcome == TickOutcome.THROTTLED:
                await asyncio.sleep(settings.SCHEDULER_LIMIT_BACKOFF_SECONDS)

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "enabled": settings.SCHEDULER_ENABLED,
            "ticks": self.ticks,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
        }


# Singleton instance started from the FastAPI lifespan
scheduler_loop = SchedulerLoop()
