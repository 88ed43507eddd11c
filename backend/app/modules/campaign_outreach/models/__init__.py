"""
Campaign Outreach Models
"""
from app.modules.campaign_outreach.models.lead import Lead
from app.modules.campaign_outreach.models.campaign import Campaign, Sequence, SequenceVariant
from app.modules.campaign_outreach.models.campaign_lead import CampaignLead
from app.modules.campaign_outreach.models.approval_queue import ApprovalQueueItem
from app.modules.campaign_outreach.models.automation_log import AutomationLog

__all__ = [
    "Lead",
    "Campaign",
    "Sequence",
    "SequenceVariant",
    "CampaignLead",
    "ApprovalQueueItem",
    "AutomationLog",
]
