"""
Campaign Service
Operator-facing campaign management: CRUD, lifecycle, leads, sequence steps
and the explicit "generate messages" action that feeds the approval queue.

LIFECYCLE:
- create / duplicate -> draft
- launch: draft|paused -> active (sequence must be contiguous from 1, leads must exist)
- pause:  active -> paused   (the scheduler only scans active campaigns)
- resume: paused -> active

Launch never sends anything itself: it makes leads due and the scheduler takes over,
so every LinkedIn action still goes through approval.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, List, Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.constants import GENERATION_DELAY_SECONDS
from app.shared.utils.cache import app_cache, get_campaign_list_cache_key, CACHE_TTL_CAMPAIGN_LIST
from app.shared.utils.exceptions import (
    EntityNotFoundError,
    InvalidStateError,
    SequenceValidationError,
)
from app.modules.campaign_outreach.constants import (
    CampaignStatus,
    CampaignLeadStatus,
    StepType,
    CAMPAIGN_TEMPLATES,
)
from app.modules.campaign_outreach.repositories.lead_repository import LeadRepository
from app.modules.campaign_outreach.repositories.campaign_repository import CampaignRepository
from app.modules.campaign_outreach.repositories.campaign_lead_repository import CampaignLeadRepository
from app.modules.campaign_outreach.repositories.approval_repository import ApprovalRepository
from app.modules.campaign_outreach.repositories.automation_log_repository import AutomationLogRepository
from app.modules.campaign_outreach.services.approval_service import ApprovalService
from app.modules.campaign_outreach.services.ai_service import ai_service

logger = logging.getLogger("campaign_service")

CAMPAIGN_FIELDS = (
    "name", "description", "type", "goal", "priority", "target_audience",
    "daily_cap", "schedule_start", "schedule_end", "timezone", "settings",
)
STEP_FIELDS = (
    "type", "delay_days", "condition_type", "send_window_start", "send_window_end",
    "retry_count", "retry_delay_hours", "subject_line", "notes",
)

# Sent / replied / completed leads count towards campaign progress
PROGRESS_STATUSES = [
    CampaignLeadStatus.SENT.value,
    CampaignLeadStatus.REPLIED.value,
    CampaignLeadStatus.COMPLETED.value,
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_contiguity(step_orders: List[int]) -> Dict[str, Any]:
    """A runnable sequence is exactly 1..N with no gap."""
    expected = list(range(1, (max(step_orders) if step_orders else 0) + 1))
    missing = [order for order in expected if order not in set(step_orders)]
    return {
        "contiguous": bool(step_orders) and not missing and len(step_orders) == len(expected),
        "step_orders": step_orders,
        "missing": missing,
    }


def _pick(data: Dict[str, Any], fields) -> Dict[str, Any]:
    return {key: data[key] for key in fields if key in data and data[key] is not None}


def _normalise_step(data: Dict[str, Any]) -> Dict[str, Any]:
    step_type = StepType.parse(data.get("type"))
    if step_type is None:
        raise ValueError(
            f"Invalid step type '{data.get('type')}'. "
            f"Allowed: {', '.join(t.value for t in StepType)}"
        )
    values = _pick(data, STEP_FIELDS)
    values["type"] = step_type.value
    values["delay_days"] = max(int(data.get("delay_days") or 0), 0)
    return values


class CampaignService:
    def __init__(
        self,
        db: AsyncSession,
        ai=None,
        approvals: Optional[ApprovalService] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db = db
        self.clock = clock
        self.repo = CampaignRepository(db)
        self.lead_repo = LeadRepository(db)
        self.campaign_lead_repo = CampaignLeadRepository(db)
        self.approval_repo = ApprovalRepository(db)
        self.log_repo = AutomationLogRepository(db)
        self.ai = ai or ai_service
        self._approvals = approvals

    @property
    def approvals(self) -> ApprovalService:
        if self._approvals is None:
            self._approvals = ApprovalService(self.db, clock=self.clock)
        return self._approvals

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.db.commit()
            app_cache.invalidate_pattern("campaigns:*")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    async def _get_or_404(self, campaign_id: int) -> dict:
        campaign = await self.repo.get_by_id(campaign_id)
        if not campaign:
            raise EntityNotFoundError("Campaign", campaign_id)
        return campaign

    # ============================================
    # CAMPAIGNS
    # ============================================

    async def list_campaigns(self, status: Optional[str] = None) -> List[dict]:
        """Campaigns with per-status lead counts, progress and response rate. Cached briefly."""
        cache_key = get_campaign_list_cache_key(status)
        cached = app_cache.get(cache_key)
        if cached is not None:
            return cached

        campaigns = await self.repo.list_campaigns(status)
        stats = await self.repo.get_lead_stats_for_campaigns([c["id"] for c in campaigns])

        for campaign in campaigns:
            lead_stats = stats.get(campaign["id"], {})
            total = campaign.get("lead_count") or 0
            sent = sum(lead_stats.get(s, 0) for s in PROGRESS_STATUSES)
            replied = lead_stats.get(CampaignLeadStatus.REPLIED.value, 0)
            campaign["lead_stats"] = lead_stats
            campaign["progress"] = round(sent / total * 100) if total else 0
            campaign["response_rate"] = round(replied / sent * 100) if sent else 0

        app_cache.set(cache_key, campaigns, ttl_seconds=CACHE_TTL_CAMPAIGN_LIST)
        return campaigns

    async def get_campaign(self, campaign_id: int) -> dict:
        campaign = await self._get_or_404(campaign_id)
        campaign["sequences"] = await self.repo.get_sequences(campaign_id)
        campaign["stats"] = await self.repo.get_lead_stats(campaign_id)
        return campaign

    async def create_campaign(self, data: Dict[str, Any]) -> dict:
        """New draft campaign. A template_id seeds its sequence from a built-in template."""
        if not (data.get("name") or "").strip():
            raise ValueError("Campaign name is required")

        template = None
        if data.get("template_id"):
            template = next((t for t in CAMPAIGN_TEMPLATES if t["id"] == data["template_id"]), None)
            if template is None:
                raise ValueError(f"Unknown campaign template '{data['template_id']}'")

        values = _pick(data, CAMPAIGN_FIELDS)
        values["status"] = CampaignStatus.DRAFT.value
        if template:
            values.setdefault("goal", template["goal"])
            values.setdefault("type", template["type"])

        async with self.transaction():
            campaign = await self.repo.create(values)
            steps = []
            if template:
                for order, step in enumerate(template["sequence_config"], start=1):
                    steps.append(await self.repo.create_step(campaign["id"], {
                        "step_order": order,
                        "type": step["type"],
                        "delay_days": step["delay_days"],
                    }))

        logger.info(f"📋 Created campaign {campaign['id']} '{campaign['name']}' ({len(steps)} steps)")
        campaign["sequences"] = steps
        return campaign

    async def update_campaign(self, campaign_id: int, data: Dict[str, Any]) -> dict:
        await self._get_or_404(campaign_id)
        async with self.transaction():
            updated = await self.repo.update(campaign_id, _pick(data, CAMPAIGN_FIELDS))
        return updated

    async def duplicate_campaign(self, campaign_id: int, name: Optional[str] = None) -> dict:
        """Copy the campaign definition, steps and variants into a new draft. Leads are not copied."""
        source = await self._get_or_404(campaign_id)
        sequences = await self.repo.get_sequences(campaign_id)

        values = _pick(source, CAMPAIGN_FIELDS)
        values["name"] = name or f"{source['name']} (Copy)"
        values["status"] = CampaignStatus.DRAFT.value

        async with self.transaction():
            copy = await self.repo.create(values)
            for step in sequences:
                step_values = _pick(step, STEP_FIELDS)
                step_values["step_order"] = step["step_order"]
                new_step = await self.repo.create_step(copy["id"], step_values)
                for variant in step.get("variants", []):
                    await self.repo.create_variant(
                        new_step["id"],
                        variant["content"],
                        weight=variant.get("weight") or 100,
                        variant_name=variant.get("variant_name"),
                        is_active=variant.get("is_active", True) is not False
                    )

        logger.info(f"📋 Duplicated campaign {campaign_id} -> {copy['id']}")
        return copy

    async def delete_campaign(self, campaign_id: int) -> dict:
        async with self.transaction():
            deleted = await self.repo.delete(campaign_id)
        if not deleted:
            raise EntityNotFoundError("Campaign", campaign_id)
        logger.info(f"🗑️ Deleted campaign {campaign_id}")
        return {"success": True, "id": campaign_id}

    # ============================================
    # LIFECYCLE
    # ============================================

    async def launch_campaign(self, campaign_id: int) -> dict:
        campaign = await self._get_or_404(campaign_id)
        if campaign["status"] not in (CampaignStatus.DRAFT.value, CampaignStatus.PAUSED.value):
            raise InvalidStateError(f"Campaign {campaign_id} is {campaign['status']} and cannot be launched")

        report = await self.validate_sequence(campaign_id)
        if not report["step_orders"]:
            raise SequenceValidationError(campaign_id, "Campaign has no sequence steps")
        if not report["contiguous"]:
            raise SequenceValidationError(
                campaign_id,
                f"Sequence steps must be numbered 1..N without gaps (missing: {report['missing']})",
                missing_steps=report["missing"]
            )
        if await self.repo.count_leads(campaign_id) == 0:
            raise InvalidStateError(f"Campaign {campaign_id} has no leads")

        now = self.clock()
        async with self.transaction():
            updated = await self.repo.update_status(campaign_id, CampaignStatus.ACTIVE.value, launched_at=now)
            activated = await self.campaign_lead_repo.activate_for_launch(campaign_id, now)

        logger.info(f"🚀 Campaign {campaign_id} launched: {activated} lead(s) due now")
        return {"success": True, "campaign": updated, "leads_activated": activated}

    async def pause_campaign(self, campaign_id: int) -> dict:
        return await self._transition(campaign_id, CampaignStatus.ACTIVE, CampaignStatus.PAUSED)

    async def resume_campaign(self, campaign_id: int) -> dict:
        return await self._transition(campaign_id, CampaignStatus.PAUSED, CampaignStatus.ACTIVE)

    async def _transition(self, campaign_id: int, expected: CampaignStatus, target: CampaignStatus) -> dict:
        campaign = await self._get_or_404(campaign_id)
        if campaign["status"] != expected.value:
            raise InvalidStateError(
                f"Campaign {campaign_id} is {campaign['status']}, expected {expected.value}"
            )
        async with self.transaction():
            updated = await self.repo.update_status(campaign_id, target.value)
        logger.info(f"Campaign {campaign_id}: {expected.value} -> {target.value}")
        return {"success": True, "campaign": updated}

    # ============================================
    # LEADS
    # ============================================

    async def add_leads(self, campaign_id: int, lead_ids: List[int]) -> dict:
        """
        Enrol leads at step 1, due now. Already-enrolled and unknown leads are skipped.
        Warns (but still enrols) when the campaign has no sequence yet.
        """
        await self._get_or_404(campaign_id)
        requested = list(dict.fromkeys(lead_ids or []))
        if not requested:
            raise ValueError("lead_ids must not be empty")

        known = {lead["id"] for lead in await self.lead_repo.get_leads_by_ids(requested)}
        to_insert = [lead_id for lead_id in requested if lead_id in known]

        async with self.transaction():
            added = await self.campaign_lead_repo.add_leads(campaign_id, to_insert, self.clock())

        result = {"success": True, "added": len(added), "skipped": len(requested) - len(added)}
        if not await self.repo.get_step_orders(campaign_id):
            result["warning"] = "Campaign has no sequence steps; leads will not be processed until steps are added"
            logger.warning(f"⚠️ Leads added to campaign {campaign_id} which has no sequence steps")

        logger.info(f"👥 Campaign {campaign_id}: {result['added']} lead(s) added, {result['skipped']} skipped")
        return result

    async def get_campaign_leads(self, campaign_id: int) -> List[dict]:
        await self._get_or_404(campaign_id)
        return await self.repo.get_campaign_leads(campaign_id)

    async def get_logs(self, campaign_id: int, limit: int = 100) -> List[dict]:
        await self._get_or_404(campaign_id)
        return await self.log_repo.get_for_campaign(campaign_id, limit)

    # ============================================
    # SEQUENCE STEPS
    # ============================================

    async def add_sequence_step(self, campaign_id: int, data: Dict[str, Any]) -> dict:
        """Append a step at max(step_order) + 1; optional content becomes a weight-100 variant."""
        await self._get_or_404(campaign_id)
        values = _normalise_step(data)

        async with self.transaction():
            orders = await self.repo.get_step_orders(campaign_id)
            values["step_order"] = (max(orders) if orders else 0) + 1
            step = await self.repo.create_step(campaign_id, values)
            step["variants"] = []
            if data.get("content"):
                step["variants"].append(await self.repo.create_variant(step["id"], data["content"]))

        logger.info(f"➕ Campaign {campaign_id}: step {step['step_order']} ({step['type']}) added")
        return step

    async def update_sequence_step(self, campaign_id: int, step_id: int, data: Dict[str, Any]) -> dict:
        """Edit step settings. step_order is not editable; delete and re-add to reorder."""
        step = await self.repo.get_step_by_id(campaign_id, step_id)
        if not step:
            raise EntityNotFoundError("Sequence", step_id)

        values = _pick(data, STEP_FIELDS)
        if "type" in values:
            values["type"] = _normalise_step(values)["type"]
        if "delay_days" in values:
            values["delay_days"] = max(int(values["delay_days"]), 0)

        async with self.transaction():
            updated = await self.repo.update_step(step_id, values) if values else step
            if data.get("content"):
                await self.repo.create_variant(step_id, data["content"])
        return updated

    async def delete_sequence_step(self, campaign_id: int, step_id: int) -> dict:
        """
        Delete a step and renumber the following ones down by one.
        Leads past the deleted step move down with them so their cursor keeps
        pointing at the same step.
        """
        step = await self.repo.get_step_by_id(campaign_id, step_id)
        if not step:
            raise EntityNotFoundError("Sequence", step_id)

        deleted_order = step["step_order"]
        async with self.transaction():
            await self.repo.delete_step(step_id)
            await self.repo.shift_steps_down(campaign_id, deleted_order)
            await self.campaign_lead_repo.shift_steps_after(campaign_id, deleted_order)

        logger.info(f"➖ Campaign {campaign_id}: step {deleted_order} deleted, later steps renumbered")
        return {"success": True, "deleted_step_order": deleted_order}

    async def validate_sequence(self, campaign_id: int) -> dict:
        return check_contiguity(await self.repo.get_step_orders(campaign_id))

    def get_templates(self) -> List[dict]:
        return CAMPAIGN_TEMPLATES

    # ============================================
    # CONTENT GENERATION (explicit operator action)
    # ============================================

    async def generate_messages(
        self,
        campaign_id: int,
        step_type: Optional[str] = None,
        lead_ids: Optional[List[int]] = None
    ) -> dict:
        """
        Generate AI copy for the campaign's leads and put it in the approval queue.
        This is the only place the LLM is called.

        Leads without a LinkedIn URL, with a pending item, or whose current step
        is not a `step_type` step are skipped.
        """
        campaign = await self._get_or_404(campaign_id)

        sequences = await self.repo.get_sequences(campaign_id)
        step_types = {s["step_order"]: s["type"] for s in sequences}
        if step_type is None:
            step_type = sequences[0]["type"] if sequences else StepType.MESSAGE.value
        step = StepType.parse(step_type)
        if not StepType.requires_approval(step):
            raise ValueError(f"Messages can only be generated for LinkedIn steps, not '{step_type}'")

        leads = await self.repo.get_campaign_leads(campaign_id)
        if lead_ids:
            wanted = set(lead_ids)
            leads = [lead for lead in leads if lead["lead_id"] in wanted]
        if not leads:
            raise InvalidStateError("No leads found to process")

        results = {"success": True, "generated": 0, "skipped": [], "failed": [], "total": len(leads)}
        if not self.ai.is_configured():
            logger.warning("⚠️ OPENAI_API_KEY not configured, template fallbacks will be queued")

        for index, lead in enumerate(leads):
            lead_id = lead["lead_id"]
            if not (lead.get("linkedin_url") or "").strip():
                results["skipped"].append({"lead_id": lead_id, "reason": "no_linkedin_url"})
                continue
            if lead.get("pending_approval"):
                results["skipped"].append({"lead_id": lead_id, "reason": "pending_approval"})
                continue
            if step_types.get(lead.get("current_step")) != step.value:
                results["skipped"].append({"lead_id": lead_id, "reason": "step_mismatch"})
                continue

            try:
                profile = {**lead, "id": lead_id}
                if step == StepType.CONNECTION_REQUEST:
                    content = await self.ai.generate_connection_request(profile, campaign)
                else:
                    content = await self.ai.generate_follow_up_message(profile, campaign)

                await self.approvals.add_to_queue(
                    campaign_id, lead_id, step.value, content, step_order=lead.get("current_step")
                )
                results["generated"] += 1
            except Exception as e:
                logger.error(f"❌ Message generation failed for lead {lead_id}: {e}")
                results["failed"].append({"lead_id": lead_id, "error": str(e)})

            if index < len(leads) - 1:
                await asyncio.sleep(GENERATION_DELAY_SECONDS)

        logger.info(
            f"🤖 Campaign {campaign_id}: {results['generated']} generated, "
            f"{len(results['skipped'])} skipped, {len(results['failed'])} failed"
        )
        return results
