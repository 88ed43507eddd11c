"""
Automation Log ORM Model
Append-only audit trail: dispatch attempts and results, safety quota entries,
webhook deliveries. Rows are never updated or deleted by the application.
"""
from sqlalchemy import Column, BigInteger, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.shared.db.base import Base


class AutomationLog(Base):
    __tablename__ = "automation_logs"

    id = Column(BigInteger, primary_key=True)

    # Audit rows outlive the campaign / lead they describe
    campaign_id = Column(BigInteger, ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)
    lead_id = Column(BigInteger, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True)

    event_type = Column(Text, nullable=True)    # phantom_launched, webhook_received, outreach, sequence
    action = Column(Text, nullable=True)        # send_connection_request, send_message, email_failover...
    status = Column(Text, nullable=True)        # sent, success, failed, warning
    details = Column(JSONB, nullable=True, server_default="{}")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_automation_logs_event_created", "event_type", "created_at"),
        Index("idx_automation_logs_campaign", "campaign_id", "created_at"),
    )

    def __repr__(self):
        return f"<AutomationLog(id={self.id}, event='{self.event_type}', action='{self.action}', status='{self.status}')>"
