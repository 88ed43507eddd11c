"""
Campaign Lead ORM Model
SQLAlchemy model representing the 'campaign_leads' table.

One row per (campaign, lead): the lead's execution cursor within the campaign.
The scheduler, the dispatcher, the sequence advancer and the webhook all mutate it.
"""
from sqlalchemy import Column, BigInteger, Text, Integer, DateTime, ForeignKey, Index, UniqueConstraint
from app.shared.db.base import Base, TimestampMixin


class CampaignLead(Base, TimestampMixin):
    __tablename__ = "campaign_leads"

    id = Column(BigInteger, primary_key=True)
    campaign_id = Column(BigInteger, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    lead_id = Column(BigInteger, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)

    # ============================================
    # CURSOR
    # ============================================
    status = Column(Text, nullable=False, server_default="pending")
    current_step = Column(Integer, nullable=False, server_default="1")    # sequences.step_order
    next_action_due = Column(DateTime(timezone=True), nullable=True)      # NULL = eligible now

    # ============================================
    # PROVIDER CORRELATION
    # ============================================
    last_container_id = Column(Text, nullable=True)       # Latest PhantomBuster container launched
    advanced_container_id = Column(Text, nullable=True)   # Container the cursor was last advanced for
    last_activity_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("campaign_id", "lead_id", name="uq_campaign_leads_pair"),
        Index("idx_campaign_leads_due", "status", "next_action_due"),
        Index("idx_campaign_leads_container", "last_container_id"),
    )

    def __repr__(self):
        return (
            f"<CampaignLead(campaign_id={self.campaign_id}, lead_id={self.lead_id}, "
            f"status='{self.status}', step={self.current_step})>"
        )
