"""create_campaign_outreach_tables

Revision ID: 3f9a1c2e7b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9a1c2e7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: Create leads, campaigns, sequences, campaign leads, approvals and logs."""

    # ====================================
    # leads
    # ====================================
    op.create_table('leads',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('full_name', sa.Text(), nullable=True),
        sa.Column('company', sa.Text(), nullable=True),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('linkedin_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('linkedin_url')
    )

    # ====================================
    # campaigns
    # ====================================
    op.create_table('campaigns',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.Text(), server_default='standard', nullable=False),
        sa.Column('goal', sa.Text(), server_default='connections', nullable=False),
        sa.Column('priority', sa.Text(), server_default='normal', nullable=False),
        sa.Column('target_audience', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='draft', nullable=False),
        sa.Column('launched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('daily_cap', sa.Integer(), server_default='0', nullable=False),
        sa.Column('schedule_start', sa.Time(), nullable=True),
        sa.Column('schedule_end', sa.Time(), nullable=True),
        sa.Column('timezone', sa.Text(), server_default='UTC', nullable=False),
        sa.Column('settings', postgresql.JSONB(astext_type=sa.Text()),
            server_default='{}', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_campaigns_status', 'campaigns', ['status'], unique=False)

    # ====================================
    # sequences + sequence_variants
    # ====================================
    op.create_table('sequences',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('campaign_id', sa.BigInteger(), nullable=False),
        sa.Column('step_order', sa.Integer(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('delay_days', sa.Integer(), server_default='0', nullable=False),
        sa.Column('condition_type', sa.Text(), nullable=True),
        sa.Column('send_window_start', sa.Time(), nullable=True),
        sa.Column('send_window_end', sa.Time(), nullable=True),
        sa.Column('retry_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('retry_delay_hours', sa.Integer(), server_default='24', nullable=False),
        sa.Column('subject_line', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        # Deferrable so renumbering after a step delete can shift rows in one statement
        sa.UniqueConstraint('campaign_id', 'step_order', name='uq_sequences_campaign_step',
            deferrable=True, initially='IMMEDIATE'),
        sa.CheckConstraint('delay_days >= 0', name='ck_sequences_delay_non_negative')
    )
    op.create_index('idx_sequences_campaign', 'sequences', ['campaign_id'], unique=False)

    op.create_table('sequence_variants',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('sequence_id', sa.BigInteger(), nullable=False),
        sa.Column('variant_name', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('weight', sa.Integer(), server_default='100', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['sequence_id'], ['sequences.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_sequence_variants_sequence', 'sequence_variants', ['sequence_id'], unique=False)

    # ====================================
    # campaign_leads (per-lead cursor)
    # ====================================
    op.create_table('campaign_leads',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('campaign_id', sa.BigInteger(), nullable=False),
        sa.Column('lead_id', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.Text(), server_default='pending', nullable=False),
        sa.Column('current_step', sa.Integer(), server_default='1', nullable=False),
        sa.Column('next_action_due', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_container_id', sa.Text(), nullable=True),
        sa.Column('advanced_container_id', sa.Text(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('campaign_id', 'lead_id', name='uq_campaign_leads_pair')
    )
    op.create_index('idx_campaign_leads_due', 'campaign_leads',
        ['status', 'next_action_due'], unique=False)
    op.create_index('idx_campaign_leads_container', 'campaign_leads',
        ['last_container_id'], unique=False)

    # ====================================
    # approval_queue
    # ====================================
    op.create_table('approval_queue',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('campaign_id', sa.BigInteger(), nullable=False),
        sa.Column('lead_id', sa.BigInteger(), nullable=False),
        sa.Column('step_type', sa.Text(), nullable=False),
        sa.Column('step_order', sa.Integer(), nullable=True),
        sa.Column('generated_content', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='pending', nullable=False),
        sa.Column('admin_feedback', sa.Text(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    # At most one pending item per (campaign, lead)
    op.create_index('uq_approval_queue_pending_pair', 'approval_queue',
        ['campaign_id', 'lead_id'], unique=True,
        postgresql_where=sa.text("status = 'pending'"))
    op.create_index('idx_approval_queue_lookup', 'approval_queue',
        ['campaign_id', 'lead_id', 'step_type'], unique=False)
    op.create_index('idx_approval_queue_status', 'approval_queue', ['status'], unique=False)

    # ====================================
    # automation_logs
    # ====================================
    op.create_table('automation_logs',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('campaign_id', sa.BigInteger(), nullable=True),
        sa.Column('lead_id', sa.BigInteger(), nullable=True),
        sa.Column('event_type', sa.Text(), nullable=True),
        sa.Column('action', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()),
            server_default='{}', nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
            server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_automation_logs_event_created', 'automation_logs',
        ['event_type', 'created_at'], unique=False)
    op.create_index('idx_automation_logs_campaign', 'automation_logs',
        ['campaign_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema: Drop every campaign outreach table."""

    op.drop_index('idx_automation_logs_campaign', table_name='automation_logs')
    op.drop_index('idx_automation_logs_event_created', table_name='automation_logs')
    op.drop_table('automation_logs')

    op.drop_index('idx_approval_queue_status', table_name='approval_queue')
    op.drop_index('idx_approval_queue_lookup', table_name='approval_queue')
    op.drop_index('uq_approval_queue_pending_pair', table_name='approval_queue')
    op.drop_table('approval_queue')

    op.drop_index('idx_campaign_leads_container', table_name='campaign_leads')
    op.drop_index('idx_campaign_leads_due', table_name='campaign_leads')
    op.drop_table('campaign_leads')

    op.drop_index('idx_sequence_variants_sequence', table_name='sequence_variants')
    op.drop_table('sequence_variants')

    op.drop_index('idx_sequences_campaign', table_name='sequences')
    op.drop_table('sequences')

    op.drop_index('idx_campaigns_status', table_name='campaigns')
    op.drop_table('campaigns')

    op.drop_table('leads')
