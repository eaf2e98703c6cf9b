"""Initial schema: users, sessions, events, attendance, certificates, history

Revision ID: 20261001_000000
Revises:
Create Date: 2026-10-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261001_000000'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('email_normalized', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('first_name', sa.String(255), nullable=False),
        sa.Column('last_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_users_role', 'users', ['role'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('last_seen_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
    )
    op.create_index('idx_sessions_token_hash', 'sessions', ['token_hash'])
    op.create_index('idx_sessions_user_id', 'sessions', ['user_id'])
    op.create_index('idx_sessions_expires_at', 'sessions', ['expires_at'])

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('venue', sa.String(255), nullable=False),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('organiser_name', sa.String(255), nullable=False),
        sa.Column('chief_guest', sa.String(255), nullable=True),
        sa.Column('event_date', sa.TIMESTAMP(timezone=True), nullable=False, index=True),
        sa.Column('expiry_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('privacy', sa.String(20), nullable=False, server_default='public'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('event_code', sa.String(6), nullable=True, unique=True, index=True),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('auto_send_after_event_end', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('certificates_sent', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('certificates_sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_events_autosend', 'events', ['auto_send_after_event_end', 'certificates_sent'])
    op.create_index('idx_events_privacy_active', 'events', ['privacy', 'is_active'])

    for table in ('event_co_admins', 'event_participants'):
        op.create_table(
            table,
            sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        )

    op.create_table(
        'attendances',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='present'),
        sa.Column('marked_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_attendance_event_user'),
    )
    op.create_index('idx_attendance_event_status', 'attendances', ['event_id', 'status'])

    op.create_table(
        'certificates',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('certificate_id', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('issued_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('pdf_path', sa.String(500), nullable=False, server_default=''),
        sa.Column('custom_fields', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='generated'),
        sa.Column('delivery_status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('email_sent', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('email_sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_attempt_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_certificate_event_user'),
        sa.CheckConstraint('template_id >= 1 AND template_id <= 7', name='ck_certificate_template_id'),
    )
    op.create_index('idx_certificates_event_delivery', 'certificates', ['event_id', 'delivery_status'])

    op.create_table(
        'certificate_settings',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('template_id', sa.Integer(), nullable=True, server_default='1'),
        sa.Column('logo_left', sa.String(500), nullable=True),
        sa.Column('logo_right', sa.String(500), nullable=True),
        sa.Column('signatures', sa.JSON(), nullable=False),
        sa.Column('custom_fields', sa.JSON(), nullable=False),
        sa.Column('auto_send_after_event_end', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'user_history',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('related_event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='SET NULL'), nullable=True),
        sa.Column('related_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_user_history_user_created', 'user_history', ['user_id', 'created_at'])
    op.create_index('idx_user_history_action', 'user_history', ['action'])
    op.create_index('idx_user_history_event', 'user_history', ['related_event_id'])


def downgrade() -> None:
    op.drop_table('user_history')
    op.drop_table('certificate_settings')
    op.drop_table('certificates')
    op.drop_table('attendances')
    op.drop_table('event_participants')
    op.drop_table('event_co_admins')
    op.drop_table('events')
    op.drop_table('sessions')
    op.drop_table('users')
