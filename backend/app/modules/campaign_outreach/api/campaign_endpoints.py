"""
Campaign API Endpoints
Campaign CRUD, lifecycle, leads, sequence steps and AI message generation.

Domain errors (EntityNotFoundError, InvalidStateError, SequenceValidationError,
ValueError) are translated to HTTP status codes by the handlers in app.main.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.shared.db.session import get_db
from app.modules.campaign_outreach.services.campaign_service import CampaignService
from app.modules.campaign_outreach.schemas.campaign_schemas import (
    CreateCampaignRequest,
    UpdateCampaignRequest,
    DuplicateCampaignRequest,
    AddLeadsRequest,
    SequenceStepRequest,
    UpdateSequenceStepRequest,
    GenerateMessagesRequest,
    AddLeadsResponse,
    SequenceValidationResponse,
)

router = APIRouter()
logger = logging.getLogger("campaign_api")


# ============================================
# CAMPAIGNS
# ============================================

@router.get("", summary="List campaigns")
async def list_campaigns(
    status: Optional[str] = Query(default=None, description="Filter by status: draft, active, paused..."),
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService(db).list_campaigns(status)


@router.post("", status_code=201, summary="Create a draft campaign")
async def create_campaign(request: CreateCampaignRequest, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).create_campaign(request.model_dump(exclude_none=True))


@router.get("/templates", summary="Built-in campaign templates")
async def get_templates(db: AsyncSession = Depends(get_db)):
    return CampaignService(db).get_templates()


@router.get("/{campaign_id}", summary="Get a campaign with its sequence and lead stats")
async def get_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).get_campaign(campaign_id)


@router.put("/{campaign_id}", summary="Update a campaign")
async def update_campaign(
    campaign_id: int,
    request: UpdateCampaignRequest,
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService(db).update_campaign(campaign_id, request.model_dump(exclude_none=True))


@router.delete("/{campaign_id}", summary="Delete a campaign (cascades)")
async def delete_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).delete_campaign(campaign_id)


@router.post("/{campaign_id}/duplicate", status_code=201, summary="Duplicate a campaign as a new draft")
async def duplicate_campaign(
    campaign_id: int,
    request: Optional[DuplicateCampaignRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    name = request.name if request else None
    return await CampaignService(db).duplicate_campaign(campaign_id, name=name)


# ============================================
# LIFECYCLE
# ============================================

@router.post("/{campaign_id}/launch", summary="Launch a campaign")
async def launch_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    """
    Validates the sequence (steps 1..N, no gaps) and that leads exist, then
    activates the campaign. Leads become due immediately; the scheduler queues
    their first step for approval. Nothing is sent by this call.
    """
    return await CampaignService(db).launch_campaign(campaign_id)


@router.post("/{campaign_id}/pause", summary="Pause an active campaign")
async def pause_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).pause_campaign(campaign_id)


@router.post("/{campaign_id}/resume", summary="Resume a paused campaign")
async def resume_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).resume_campaign(campaign_id)


# ============================================
# LEADS
# ============================================

@router.get("/{campaign_id}/leads", summary="Campaign leads with their pending approval")
async def get_campaign_leads(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).get_campaign_leads(campaign_id)


@router.post("/{campaign_id}/leads", response_model=AddLeadsResponse, summary="Add leads to a campaign")
async def add_leads(campaign_id: int, request: AddLeadsRequest, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).add_leads(campaign_id, request.lead_ids)


@router.get("/{campaign_id}/logs", summary="Automation log (most recent first)")
async def get_logs(
    campaign_id: int,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService(db).get_logs(campaign_id, limit)


# ============================================
# SEQUENCE
# ============================================

@router.post("/{campaign_id}/sequences", status_code=201, summary="Append a sequence step")
async def add_sequence_step(
    campaign_id: int,
    request: SequenceStepRequest,
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService(db).add_sequence_step(campaign_id, request.model_dump(exclude_none=True))


@router.put("/{campaign_id}/sequences/{step_id}", summary="Update a sequence step")
async def update_sequence_step(
    campaign_id: int,
    step_id: int,
    request: UpdateSequenceStepRequest,
    db: AsyncSession = Depends(get_db)
):
    return await CampaignService(db).update_sequence_step(
        campaign_id, step_id, request.model_dump(exclude_none=True)
    )


@router.delete("/{campaign_id}/sequences/{step_id}", summary="Delete a sequence step and renumber the rest")
async def delete_sequence_step(campaign_id: int, step_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).delete_sequence_step(campaign_id, step_id)


@router.get(
    "/{campaign_id}/sequence-validation",
    response_model=SequenceValidationResponse,
    summary="Check that step orders are contiguous from 1"
)
async def validate_sequence(campaign_id: int, db: AsyncSession = Depends(get_db)):
    return await CampaignService(db).validate_sequence(campaign_id)


# ============================================
# CONTENT GENERATION
# ============================================

@router.post("/{campaign_id}/generate-messages", summary="Generate AI messages into the approval queue")
async def generate_messages(
    campaign_id: int,
    request: Optional[GenerateMessagesRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    The only place the LLM is called. Generated content is queued for approval;
    nothing is sent until an operator approves it.
    """
    request = request or GenerateMessagesRequest()
    return await CampaignService(db).generate_messages(
        campaign_id, step_type=request.step_type, lead_ids=request.lead_ids
    )
