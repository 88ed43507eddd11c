"""
Campaign Outreach Repositories

Database access layer for the campaign outreach module.
Repositories execute SQL only; services own commit / rollback.
"""

from .lead_repository import LeadRepository
from .campaign_repository import CampaignRepository
from .campaign_lead_repository import CampaignLeadRepository
from .approval_repository import ApprovalRepository
from .automation_log_repository import AutomationLogRepository

__all__ = [
    "LeadRepository",
    "CampaignRepository",
    "CampaignLeadRepository",
    "ApprovalRepository",
    "AutomationLogRepository",
]
