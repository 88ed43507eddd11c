"""
Campaign Outreach Services

Business logic layer for the campaign outreach module.
Services own transactions; repositories never commit.
"""

from .lead_locks import LeadLockRegistry, lead_locks
from .safety_service import SafetyService
from .phantombuster_service import (
    PhantomBusterService,
    PhantomBusterError,
    PhantomBusterRetryableError,
    phantombuster_service,
)
from .message_csv_store import MessageCsvStore, message_csv_store
from .ai_service import AIService, ai_service
from .email_service import EmailService, email_service
from .sequence_service import SequenceService
from .outreach_service import OutreachService, SendResult
from .approval_service import ApprovalService
from .scheduler_service import SchedulerService, SchedulerLoop, scheduler_loop
from .webhook_service import WebhookService
from .campaign_service import CampaignService
from .stuck_lead_service import StuckLeadService

__all__ = [
    "LeadLockRegistry",
    "lead_locks",
    "SafetyService",
    "PhantomBusterService",
    "PhantomBusterError",
    "PhantomBusterRetryableError",
    "phantombuster_service",
    "MessageCsvStore",
    "message_csv_store",
    "AIService",
    "ai_service",
    "EmailService",
    "email_service",
    "SequenceService",
    "OutreachService",
    "SendResult",
    "ApprovalService",
    "SchedulerService",
    "SchedulerLoop",
    "scheduler_loop",
    "WebhookService",
    "CampaignService",
    "StuckLeadService",
]
