"""
Operations API Endpoints
Scheduler status and stuck-lead tooling for operators.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.session import get_db
from app.modules.campaign_outreach.services.safety_service import SafetyService
from app.modules.campaign_outreach.services.scheduler_service import scheduler_loop
from app.modules.campaign_outreach.services.stuck_lead_service import StuckLeadService
from app.modules.campaign_outreach.schemas.campaign_schemas import (
    FixStuckLeadsRequest,
    FixStuckLeadsResponse,
    SchedulerStatusResponse,
)

router = APIRouter()
logger = logging.getLogger("operations_api")


@router.get("/scheduler/status", response_model=SchedulerStatusResponse, summary="Scheduler loop status")
async def get_scheduler_status(db: AsyncSession = Depends(get_db)):
    """Loop running flag, last tick outcome and current safety-limit usage."""
    status = scheduler_loop.get_status()
    status["safety"] = await SafetyService(db).get_status()
    return status


@router.get("/stuck-leads", summary="Due leads whose current step does not exist")
async def get_stuck_leads(
    campaign_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db)
):
    leads = await StuckLeadService(db).find_stuck_leads(campaign_id)
    return {"count": len(leads), "leads": leads}


@router.post("/stuck-leads/fix", response_model=FixStuckLeadsResponse, summary="Repair stuck leads")
async def fix_stuck_leads(request: FixStuckLeadsRequest, db: AsyncSession = Depends(get_db)):
    logger.info(f"🔧 Fixing stuck leads: action={request.action.value} campaign={request.campaign_id}")
    return await StuckLeadService(db).fix_stuck_leads(request.action.value, request.campaign_id)
