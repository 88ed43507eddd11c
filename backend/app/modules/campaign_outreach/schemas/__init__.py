"""
Campaign Outreach Schemas

Pydantic models for API request/response validation.
"""

from .campaign_schemas import (
    # Request schemas
    CreateCampaignRequest,
    UpdateCampaignRequest,
    DuplicateCampaignRequest,
    AddLeadsRequest,
    SequenceStepRequest,
    UpdateSequenceStepRequest,
    GenerateMessagesRequest,
    EditApprovalRequest,
    ApproveRequest,
    BulkApprovalRequest,
    FixStuckLeadsRequest,
    # Response schemas
    AddLeadsResponse,
    SequenceValidationResponse,
    SendResultResponse,
    ApprovalDecisionResponse,
    BulkApprovalResponse,
    WebhookResponse,
    SchedulerStatusResponse,
    FixStuckLeadsResponse,
)

__all__ = [
    "CreateCampaignRequest",
    "UpdateCampaignRequest",
    "DuplicateCampaignRequest",
    "AddLeadsRequest",
    "SequenceStepRequest",
    "UpdateSequenceStepRequest",
    "GenerateMessagesRequest",
    "EditApprovalRequest",
    "ApproveRequest",
    "BulkApprovalRequest",
    "FixStuckLeadsRequest",
    "AddLeadsResponse",
    "SequenceValidationResponse",
    "SendResultResponse",
    "ApprovalDecisionResponse",
    "BulkApprovalResponse",
    "WebhookResponse",
    "SchedulerStatusResponse",
    "FixStuckLeadsResponse",
]
