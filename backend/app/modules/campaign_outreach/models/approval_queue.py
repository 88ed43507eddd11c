"""
Approval Queue ORM Model
Generated outreach content waiting for (or resolved by) a human decision.

At most one pending item per (campaign, lead), enforced by a partial unique index.
Resolved items are history: a new generation creates a new row.
"""
from sqlalchemy import Column, BigInteger, Text, Integer, DateTime, ForeignKey, Index, text
from app.shared.db.base import Base, TimestampMixin


class ApprovalQueueItem(Base, TimestampMixin):
    __tablename__ = "approval_queue"

    id = Column(BigInteger, primary_key=True)
    campaign_id = Column(BigInteger, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    lead_id = Column(BigInteger, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)

    step_type = Column(Text, nullable=False)
    step_order = Column(Integer, nullable=True)            # Sequence step the content was generated for
    generated_content = Column(Text, nullable=True)

    # pending, approved, rejected, edited
    status = Column(Text, nullable=False, server_default="pending")
    admin_feedback = Column(Text, nullable=True)           # Delivery outcome notes
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_approval_queue_pending_pair",
            "campaign_id", "lead_id",
            unique=True,
            postgresql_where=text("status = 'pending'")
        ),
        Index("idx_approval_queue_lookup", "campaign_id", "lead_id", "step_type"),
        Index("idx_approval_queue_status", "status"),
    )

    def __repr__(self):
        return f"<ApprovalQueueItem(id={self.id}, lead_id={self.lead_id}, step='{self.step_type}', status='{self.status}')>"
