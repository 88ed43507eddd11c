"""
Campaign Outreach Constants
Centralized enums for every status, step type and audit action in the module.

All enums inherit from str so they can be written to Text columns and JSON
responses directly, and compared against raw strings read back from the DB.
"""
from enum import Enum


class CampaignStatus(str, Enum):
    """
    Campaign lifecycle.

    DRAFT → ACTIVE (launch) ⇄ PAUSED (pause / resume)
                    ↘ COMPLETED / ARCHIVED
    """
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class CampaignType(str, Enum):
    STANDARD = "standard"
    EVENT = "event"
    WEBINAR = "webinar"
    NURTURE = "nurture"
    RE_ENGAGEMENT = "re_engagement"
    COLD_OUTREACH = "cold_outreach"


class CampaignGoal(str, Enum):
    CONNECTIONS = "connections"
    MEETINGS = "meetings"
    PIPELINE = "pipeline"
    BRAND_AWARENESS = "brand_awareness"
    EVENT_PROMOTION = "event_promotion"
    CONTENT_ENGAGEMENT = "content_engagement"


class CampaignPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class CampaignLeadStatus(str, Enum):
    """
    Status of a lead's execution cursor within one campaign.

    Status Flow:
    NEW/PENDING → (scheduler) → NEEDS_APPROVAL → (approve) → PROCESSING → PENDING (next step)
                                                                       ↘ COMPLETED (no next step)
    PROCESSING → PENDING on provider error (retried later)
    Webhook: → COMPLETED / FAILED
    """
    NEW = "new"
    PENDING = "pending"
    READY_FOR_ACTION = "ready_for_action"
    PROCESSING = "processing"
    NEEDS_APPROVAL = "needs_approval"
    APPROVED = "approved"
    SENT = "sent"
    REPLIED = "replied"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @classmethod
    def due_statuses(cls) -> list:
        """Statuses the scheduler picks up once next_action_due has passed."""
        return [cls.PENDING.value, cls.READY_FOR_ACTION.value]

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if the lead has left the sequence for good."""
        return status in [cls.COMPLETED, cls.FAILED, cls.SKIPPED, cls.REPLIED]


class StepType(str, Enum):
    """Type of a sequence step."""
    CONNECTION_REQUEST = "connection_request"
    MESSAGE = "message"
    EMAIL = "email"

    @classmethod
    def parse(cls, value):
        """Return the StepType for value, or None if it is not a known step type."""
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def linkedin_types(cls) -> list:
        """Step types executed through PhantomBuster (and gated by approval)."""
        return [cls.CONNECTION_REQUEST, cls.MESSAGE]

    @classmethod
    def requires_approval(cls, value) -> bool:
        """LinkedIn outreach is never sent without a human-approved message."""
        return value in cls.linkedin_types()


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDITED = "edited"

    @classmethod
    def is_open(cls, status: str) -> bool:
        """Items a human can still approve or reject."""
        return status in [cls.PENDING, cls.EDITED]


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class LogEventType(str, Enum):
    """automation_logs.event_type values."""
    PHANTOM_LAUNCHED = "phantom_launched"   # Safety quota consumption (one per successful dispatch)
    WEBHOOK_RECEIVED = "webhook_received"   # Raw provider callback, logged before any lookup
    OUTREACH = "outreach"                   # Detailed dispatch attempt / result
    SEQUENCE = "sequence"                   # Advancer diagnostics (e.g. step_order gaps)


class LogAction(str, Enum):
    """automation_logs.action values."""
    SEND_CONNECTION_REQUEST = "send_connection_request"
    SEND_MESSAGE = "send_message"
    EMAIL_FAILOVER = "email_failover"
    SEQUENCE_GAP = "sequence_gap"

    @classmethod
    def for_step(cls, step_type: "StepType") -> "LogAction":
        return {
            StepType.CONNECTION_REQUEST: cls.SEND_CONNECTION_REQUEST,
            StepType.MESSAGE: cls.SEND_MESSAGE,
            StepType.EMAIL: cls.EMAIL_FAILOVER,
        }[step_type]


class LogStatus(str, Enum):
    SENT = "sent"
    SUCCESS = "success"
    FAILED = "failed"
    WARNING = "warning"


class SendFailureReason(str, Enum):
    """Closed set of reasons a dispatch did not send."""
    LIMIT_REACHED = "limit_reached"
    UNSUPPORTED_STEP = "unsupported_step"
    NOT_FOUND = "not_found"
    NO_LINKEDIN_URL = "no_linkedin_url"
    STEP_MISMATCH = "step_mismatch"     # Approved action is not the lead's current step
    PROVIDER_ERROR = "provider_error"
    INTERNAL_ERROR = "internal_error"

    @classmethod
    def is_retryable(cls, reason: "SendFailureReason") -> bool:
        """Reasons the scheduler will retry on its own cadence."""
        return reason in [cls.LIMIT_REACHED, cls.PROVIDER_ERROR, cls.INTERNAL_ERROR]


class StuckLeadAction(str, Enum):
    """Resolutions offered by the fix-stuck-leads tooling."""
    COMPLETE = "complete"
    REMOVE = "remove"
    CREATE_SEQUENCES = "create_sequences"


class TickOutcome(str, Enum):
    """Result of one scheduler tick."""
    IDLE = "idle"               # Nothing due
    PROCESSED = "processed"     # A lead was handled (sent, queued for approval, failed...)
    THROTTLED = "throttled"     # Safety limiter vetoed the due lead


# ============================================
# CAMPAIGN TEMPLATES
# ============================================

CAMPAIGN_TEMPLATES = [
    {
        "id": "default-connections",
        "name": "Connection outreach",
        "description": "Connect then follow up with messages",
        "goal": CampaignGoal.CONNECTIONS.value,
        "type": CampaignType.STANDARD.value,
        "sequence_config": [
            {"type": StepType.CONNECTION_REQUEST.value, "delay_days": 0},
            {"type": StepType.MESSAGE.value, "delay_days": 3},
        ],
        "is_system": True,
    },
    {
        "id": "default-meetings",
        "name": "Meeting booking",
        "description": "Multi-touch sequence to book meetings",
        "goal": CampaignGoal.MEETINGS.value,
        "type": CampaignType.STANDARD.value,
        "sequence_config": [
            {"type": StepType.CONNECTION_REQUEST.value, "delay_days": 0},
            {"type": StepType.MESSAGE.value, "delay_days": 2},
            {"type": StepType.MESSAGE.value, "delay_days": 5},
        ],
        "is_system": True,
    },
]

# Backfilled by the stuck-lead tooling for campaigns that have no sequence at all
DEFAULT_SEQUENCE_CONFIG = CAMPAIGN_TEMPLATES[0]["sequence_config"]
