"""baseline_access_grants_and_meetings

Revision ID: 4f2c9a7e1b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4f2c9a7e1b30'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    # Users & roles
    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_roles_is_active', 'roles', ['is_active'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=100), nullable=False, unique=True),
        sa.Column('email', sa.String(length=255), nullable=True, unique=True),
        sa.Column('full_name', sa.String(length=200), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])
    op.create_index('ix_user_roles_unique', 'user_roles', ['user_id', 'role_id'], unique=True)

    # Incident reports & access grants
    op.create_table('incident_reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('report_number', sa.String(length=50), nullable=False, unique=True),
        sa.Column('report_date', sa.DateTime(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )

    op.create_table('incident_report_access',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('incident_report_id', sa.Integer(), sa.ForeignKey('incident_reports.id', ondelete='CASCADE'), nullable=True),
        sa.Column('granted_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('access_type', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_incident_report_access_user_active', 'incident_report_access', ['user_id', 'is_active'])
    op.create_index('ix_incident_report_access_report_id', 'incident_report_access', ['incident_report_id'])
    op.create_index('ix_incident_report_access_expires_at', 'incident_report_access', ['expires_at'])
    op.create_index('ix_incident_report_access_created_at', 'incident_report_access', ['created_at'])

    # At most one active grant per (user, scope); global grants fold into scope 0
    op.create_index('uq_incident_report_access_active_scope',
        'incident_report_access',
        ['user_id', sa.text('COALESCE(incident_report_id, 0)')],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active'),
    )

    # Meetings
    op.create_table('meetings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('meeting_code', sa.String(length=50), nullable=False, unique=True),
        sa.Column('scheduled_at', sa.DateTime(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='scheduled', nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('offline_enabled', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_meetings_status', 'meetings', ['status'])
    op.create_index('ix_meetings_scheduled_at', 'meetings', ['scheduled_at'])

    op.create_table('meeting_participants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('meeting_id', sa.Integer(), sa.ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.Column('left_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_meeting_participants_unique', 'meeting_participants', ['meeting_id', 'user_id'], unique=True)
    op.create_index('ix_meeting_participants_user_id', 'meeting_participants', ['user_id'])

    op.create_table('meeting_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('meeting_id', sa.Integer(), sa.ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('peer_id', sa.String(length=100), nullable=False),
        sa.Column('session_data', sa.JSON(), nullable=True),
        sa.Column('offline_data', sa.JSON(), nullable=True),
        sa.Column('session_started_at', sa.DateTime(), nullable=True),
        sa.Column('session_ended_at', sa.DateTime(), nullable=True),
        sa.Column('last_heartbeat', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_meeting_sessions_unique', 'meeting_sessions', ['meeting_id', 'user_id'], unique=True)
    op.create_index('ix_meeting_sessions_meeting_peer', 'meeting_sessions', ['meeting_id', 'peer_id'])
    op.create_index('ix_meeting_sessions_ended_at', 'meeting_sessions', ['session_ended_at'])

    op.create_table('meeting_ice_candidates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('meeting_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('candidate', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_meeting_ice_candidates_session', 'meeting_ice_candidates', ['session_id', 'position'])

    op.create_table('meeting_peer_connections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('meeting_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('remote_peer_id', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_activity', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_meeting_peer_connections_unique', 'meeting_peer_connections',
        ['session_id', 'remote_peer_id'], unique=True
    )

    op.create_table('meeting_pending_signals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('meeting_id', sa.Integer(), sa.ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('holder_session_id', sa.Integer(), sa.ForeignKey('meeting_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_peer_id', sa.String(length=100), nullable=False),
        sa.Column('receiver_peer_id', sa.String(length=100), nullable=False),
        sa.Column('signal_type', sa.String(length=20), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('is_offline', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_meeting_pending_signals_receiver', 'meeting_pending_signals', ['meeting_id', 'receiver_peer_id'])
    op.create_index('ix_meeting_pending_signals_holder', 'meeting_pending_signals', ['holder_session_id'])

    op.create_table('meeting_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('meeting_id', sa.Integer(), sa.ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_offline', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_meeting_messages_meeting_created', 'meeting_messages', ['meeting_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('meeting_messages')
    op.drop_table('meeting_pending_signals')
    op.drop_table('meeting_peer_connections')
    op.drop_table('meeting_ice_candidates')
    op.drop_table('meeting_sessions')
    op.drop_table('meeting_participants')
    op.drop_table('meetings')
    op.drop_index('uq_incident_report_access_active_scope', 'incident_report_access')
    op.drop_table('incident_report_access')
    op.drop_table('incident_reports')
    op.drop_table('user_roles')
    op.drop_table('users')
    op.drop_table('roles')
