"""create payment tables

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2025-01-10 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f20b31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Directory tables (owned by the wider app, created here for standalone deployments)
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('surname', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='tenant'),
        sa.Column('monthly_rate', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('notice_day', sa.SmallInteger(), nullable=True),
        sa.Column('property_ids', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('apartment_label', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('notice_day IS NULL OR notice_day BETWEEN 1 AND 31', name='ck_users_notice_day'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'properties',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'push_tokens',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('push_token', sa.String(length=255), nullable=False),
        sa.Column('device_type', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('push_token'),
    )
    op.create_index('ix_push_tokens_user_id', 'push_tokens', ['user_id'])

    # Payment obligations
    op.create_table(
        'tenant_payments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('property_id', sa.String(), nullable=False),
        sa.Column('period_month', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'tenant_id', 'property_id', 'period_month',
            name='uq_tenant_payments_tenant_property_month',
        ),
        sa.CheckConstraint(
            'EXTRACT(DAY FROM period_month) = 1',
            name='ck_tenant_payments_period_month_first_day',
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'overdue')",
            name='ck_tenant_payments_status',
        ),
    )
    op.create_index('ix_tenant_payments_tenant_id', 'tenant_payments', ['tenant_id'])
    op.create_index('ix_tenant_payments_property_id', 'tenant_payments', ['property_id'])
    op.create_index('ix_tenant_payments_period_month', 'tenant_payments', ['period_month'])
    op.create_index('ix_tenant_payments_status', 'tenant_payments', ['status'])

    # Notification outbox
    op.create_table(
        'notification_outbox',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('notification_type', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('payload', JSONB, nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_outbox_status', 'notification_outbox', ['status'])
    op.create_index('ix_notification_outbox_tenant_id', 'notification_outbox', ['tenant_id'])

    # Audit trail
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('field_name', sa.String(), nullable=True),
        sa.Column('old_value', JSONB, nullable=True),
        sa.Column('new_value', JSONB, nullable=True),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='api'),
        sa.Column('extra_data', JSONB, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_log_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_log_entity_action', 'audit_logs', ['entity_type', 'action'])
    op.create_index('ix_audit_log_user_time', 'audit_logs', ['user_id', 'created_at'])
    op.create_index('ix_audit_log_source', 'audit_logs', ['source'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('notification_outbox')
    op.drop_table('tenant_payments')
    op.drop_table('push_tokens')
    op.drop_table('properties')
    op.drop_table('users')
