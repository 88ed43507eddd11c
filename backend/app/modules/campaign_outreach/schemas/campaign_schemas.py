"""
Campaign Outreach - Pydantic Schemas
Request and Response models for API endpoints.
"""
from typing import Optional, List, Dict, Any
from datetime import time
from pydantic import BaseModel, Field, field_validator

from app.modules.campaign_outreach.constants import StepType, StuckLeadAction


# ============================================
# CAMPAIGN REQUEST MODELS
# ============================================

class CreateCampaignRequest(BaseModel):
    """Request to create a draft campaign"""
    name: str = Field(..., min_length=1, description="Campaign name")
    description: Optional[str] = None
    type: Optional[str] = None
    goal: Optional[str] = None
    priority: Optional[str] = None
    target_audience: Optional[str] = None
    daily_cap: Optional[int] = Field(default=None, ge=0)
    schedule_start: Optional[time] = None
    schedule_end: Optional[time] = None
    timezone: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    template_id: Optional[str] = Field(
        default=None,
        description="Built-in template used to seed the sequence (see /campaigns/templates)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Q3 founders outreach",
                "goal": "connections",
                "template_id": "default-connections"
            }
        }


class UpdateCampaignRequest(BaseModel):
    """Partial update; omitted fields are left unchanged"""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    goal: Optional[str] = None
    priority: Optional[str] = None
    target_audience: Optional[str] = None
    daily_cap: Optional[int] = Field(default=None, ge=0)
    schedule_start: Optional[time] = None
    schedule_end: Optional[time] = None
    timezone: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


class DuplicateCampaignRequest(BaseModel):
    name: Optional[str] = None


class AddLeadsRequest(BaseModel):
    """Request to enrol leads into a campaign"""
    lead_ids: List[int] = Field(..., min_length=1, description="Lead IDs to add")

    class Config:
        json_schema_extra = {"example": {"lead_ids": [1, 2, 3]}}


class SequenceStepRequest(BaseModel):
    """Request to append a sequence step"""
    type: str = Field(..., description="connection_request, message or email")
    delay_days: int = Field(default=0, description="Days after the previous step (negative values become 0)")
    content: Optional[str] = Field(default=None, description="Optional template, stored as a weight-100 variant")
    condition_type: Optional[str] = None
    subject_line: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if StepType.parse(v) is None:
            raise ValueError(f"type must be one of: {', '.join(t.value for t in StepType)}")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "type": "message",
                "delay_days": 3,
                "content": "Thanks for connecting, {firstName}!"
            }
        }


class UpdateSequenceStepRequest(BaseModel):
    type: Optional[str] = None
    delay_days: Optional[int] = None
    content: Optional[str] = None
    condition_type: Optional[str] = None
    subject_line: Optional[str] = None
    notes: Optional[str] = None


class GenerateMessagesRequest(BaseModel):
    """Generate AI content for the approval queue"""
    step_type: Optional[str] = Field(
        default=None,
        description="connection_request or message (defaults to the campaign's first step)"
    )
    lead_ids: Optional[List[int]] = Field(default=None, description="Only these leads (default: all)")


# ============================================
# APPROVAL REQUEST MODELS
# ============================================

class EditApprovalRequest(BaseModel):
    content: str = Field(..., min_length=1)


class ApproveRequest(BaseModel):
    """Optional final edit applied at approval time"""
    modified_content: Optional[str] = None


class BulkApprovalRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


# ============================================
# OPERATOR TOOLING
# ============================================

class FixStuckLeadsRequest(BaseModel):
    action: StuckLeadAction
    campaign_id: Optional[int] = None


# ============================================
# RESPONSE MODELS
# ============================================

class AddLeadsResponse(BaseModel):
    success: bool
    added: int
    skipped: int
    warning: Optional[str] = None


class SequenceValidationResponse(BaseModel):
    contiguous: bool
    step_orders: List[int]
    missing: List[int]


class SendResultResponse(BaseModel):
    """Outcome of an immediate dispatch"""
    sent: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    container_id: Optional[str] = None


class ApprovalDecisionResponse(BaseModel):
    success: bool
    item: Dict[str, Any]
    send_result: Optional[SendResultResponse] = None


class BulkApprovalResponse(BaseModel):
    success: bool
    processed: int
    skipped: int
    items: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []


class WebhookResponse(BaseModel):
    """PhantomBuster only needs a 200"""
    received: bool = True


class SchedulerStatusResponse(BaseModel):
    running: bool
    enabled: bool
    ticks: int
    last_tick_at: Optional[str] = None
    last_outcome: Optional[str] = None
    safety: Dict[str, Dict[str, int]] = {}


class FixStuckLeadsResponse(BaseModel):
    success: bool
    action: str
    found: int
    fixed: int
    campaigns_fixed: Optional[List[int]] = None
