"""
Campaign ORM Models
SQLAlchemy models for 'campaigns', 'sequences' and 'sequence_variants'.

A campaign owns an ordered list of sequence steps (step_order 1..N, contiguous);
each step owns one or more weighted content variants.
Deleting a campaign cascades to its steps, variants, campaign leads and approvals.
"""
from sqlalchemy import (
    Column, BigInteger, Text, Integer, Boolean, DateTime, Time,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.shared.db.base import Base, TimestampMixin


class Campaign(Base, TimestampMixin):
    __tablename__ = "campaigns"

    id = Column(BigInteger, primary_key=True)

    # ============================================
    # DEFINITION
    # ============================================
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Text, nullable=False, server_default="standard")
    goal = Column(Text, nullable=False, server_default="connections")
    priority = Column(Text, nullable=False, server_default="normal")
    target_audience = Column(Text, nullable=True)

    # ============================================
    # LIFECYCLE (draft, active, paused, completed, archived)
    # ============================================
    status = Column(Text, nullable=False, server_default="draft")
    launched_at = Column(DateTime(timezone=True), nullable=True)

    # ============================================
    # SCHEDULING
    # ============================================
    daily_cap = Column(Integer, nullable=False, server_default="0")  # 0 = only the global safety caps apply
    schedule_start = Column(Time, nullable=True)
    schedule_end = Column(Time, nullable=True)
    timezone = Column(Text, nullable=False, server_default="UTC")
    settings = Column(JSONB, nullable=True, server_default="{}")

    __table_args__ = (
        Index("idx_campaigns_status", "status"),
    )

    def __repr__(self):
        return f"<Campaign(id={self.id}, name='{self.name}', status='{self.status}')>"


class Sequence(Base, TimestampMixin):
    """One step of a campaign's outreach sequence."""
    __tablename__ = "sequences"

    id = Column(BigInteger, primary_key=True)
    campaign_id = Column(BigInteger, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)

    step_order = Column(Integer, nullable=False)            # 1-based, contiguous per campaign
    type = Column(Text, nullable=False)                     # connection_request, message, email
    delay_days = Column(Integer, nullable=False, server_default="0")  # Days after the previous step

    # Optional step settings
    condition_type = Column(Text, nullable=True)
    send_window_start = Column(Time, nullable=True)
    send_window_end = Column(Time, nullable=True)
    retry_count = Column(Integer, nullable=False, server_default="0")
    retry_delay_hours = Column(Integer, nullable=False, server_default="24")
    subject_line = Column(Text, nullable=True)              # Email steps
    notes = Column(Text, nullable=True)

    __table_args__ = (
        # Deferrable so renumbering after a step delete can shift rows in one statement
        UniqueConstraint(
            "campaign_id", "step_order",
            name="uq_sequences_campaign_step",
            deferrable=True,
            initially="IMMEDIATE"
        ),
        CheckConstraint("delay_days >= 0", name="ck_sequences_delay_non_negative"),
        Index("idx_sequences_campaign", "campaign_id"),
    )

    def __repr__(self):
        return f"<Sequence(campaign_id={self.campaign_id}, step={self.step_order}, type='{self.type}')>"


class SequenceVariant(Base):
    """Weighted content template for a sequence step."""
    __tablename__ = "sequence_variants"

    id = Column(BigInteger, primary_key=True)
    sequence_id = Column(BigInteger, ForeignKey("sequences.id", ondelete="CASCADE"), nullable=False)

    variant_name = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    weight = Column(Integer, nullable=False, server_default="100")
    is_active = Column(Boolean, nullable=False, server_default="true")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_sequence_variants_sequence", "sequence_id"),
    )

    def __repr__(self):
        return f"<SequenceVariant(id={self.id}, sequence_id={self.sequence_id}, weight={self.weight})>"
