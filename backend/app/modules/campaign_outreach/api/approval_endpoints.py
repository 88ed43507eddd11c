"""
Approval Queue API Endpoints
Human review of generated outreach before anything is sent.

Approving a connection_request / message item sends it immediately; the
response carries the dispatch outcome in send_result. A failed send does not
undo the approval (the scheduler retries the lead).
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.shared.db.session import get_db
from app.modules.campaign_outreach.constants import ApprovalAction
from app.modules.campaign_outreach.services.approval_service import ApprovalService
from app.modules.campaign_outreach.schemas.campaign_schemas import (
    EditApprovalRequest,
    ApproveRequest,
    BulkApprovalRequest,
    ApprovalDecisionResponse,
    BulkApprovalResponse,
)

router = APIRouter()
logger = logging.getLogger("approval_api")


@router.get("", summary="Pending approval items")
async def get_pending_items(
    campaign_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db)
):
    return await ApprovalService(db).get_pending_items(campaign_id)


@router.get("/history", summary="Approved / rejected items")
async def get_history(
    campaign_id: Optional[int] = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db)
):
    return await ApprovalService(db).get_history(campaign_id, limit)


@router.put("/{item_id}", summary="Edit the generated content of a pending item")
async def edit_item(item_id: int, request: EditApprovalRequest, db: AsyncSession = Depends(get_db)):
    return await ApprovalService(db).edit_content(item_id, request.content)


@router.post("/{item_id}/approve", response_model=ApprovalDecisionResponse, summary="Approve (and send) one item")
async def approve_item(
    item_id: int,
    request: Optional[ApproveRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    modified_content = request.modified_content if request else None
    result = await ApprovalService(db).process_item(item_id, ApprovalAction.APPROVE.value, modified_content)
    return {"success": True, **result}


@router.post("/{item_id}/reject", response_model=ApprovalDecisionResponse, summary="Reject one item")
async def reject_item(item_id: int, db: AsyncSession = Depends(get_db)):
    result = await ApprovalService(db).process_item(item_id, ApprovalAction.REJECT.value)
    return {"success": True, **result}


@router.post("/bulk-approve", response_model=BulkApprovalResponse, summary="Approve many pending items")
async def bulk_approve(request: BulkApprovalRequest, db: AsyncSession = Depends(get_db)):
    return await ApprovalService(db).bulk_approve(request.ids)


@router.post("/bulk-reject", response_model=BulkApprovalResponse, summary="Reject many pending items")
async def bulk_reject(request: BulkApprovalRequest, db: AsyncSession = Depends(get_db)):
    return await ApprovalService(db).bulk_reject(request.ids)
