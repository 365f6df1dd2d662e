"""
Database models for the Records Center backend.

Incident report access grants and meeting signaling state.
Per-session signaling state lives in keyed tables (ICE candidates,
peer connections, pending signals) so each write touches a single row.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlmodel import Field, Relationship, SQLModel

from db.enums import (
    AccessCapability,
    AccessType,
    MeetingStatus,
    ParticipantRole,
    ParticipantStatus,
    PeerConnectionStatus,
)


def utc_now():
    """
    Get current time in UTC (timezone-naive) for database storage.

    Stores datetime in UTC without timezone info. The API layer converts
    incoming aware datetimes to naive UTC and serializes outgoing ones
    with a 'Z' suffix.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


# ============================================================================
# USERS & ROLES
# ============================================================================


class Role(TableModel, table=True):
    """Role model. 'superadmin' and 'admin' are administrative roles."""

    __tablename__ = "roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(
        min_length=2,
        max_length=100,
        sa_column=Column(String(100), nullable=False, unique=True),
        description="Role name",
    )
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False),
        description="Whether this role is active",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
        description="Creation timestamp",
    )

    __table_args__ = (Index("ix_roles_is_active", "is_active"),)


class UserRole(TableModel, table=True):
    """User-Role junction table for many-to-many relationship."""

    __tablename__ = "user_roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        description="User ID",
    )
    role_id: int = Field(
        sa_column=Column(Integer, ForeignKey("roles.id"), nullable=False),
        description="Role ID",
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False),
    )
    is_deleted: bool = Field(
        default=False,
        sa_column=Column(Boolean, default=False, nullable=False),
        description="Soft delete flag",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )

    role: "Role" = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "UserRole.role_id",
        },
    )

    __table_args__ = (
        Index("ix_user_roles_user_id", "user_id"),
        Index("ix_user_roles_unique", "user_id", "role_id", unique=True),
    )


class User(TableModel, table=True):
    """Application user. Authentication happens upstream; we only read users."""

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(
        sa_column=Column(String(100), nullable=False, unique=True),
        description="Login name",
    )
    email: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True),
    )
    full_name: Optional[str] = Field(default=None, max_length=200)
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False),
    )
    is_super_admin: bool = Field(
        default=False,
        sa_column=Column(Boolean, default=False, nullable=False),
        description="Super administrators manage access grants",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
            onupdate=utc_now,
        ),
    )

    user_roles: List["UserRole"] = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "UserRole.user_id",
        },
    )

    __table_args__ = (Index("ix_users_is_active", "is_active"),)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username


# ============================================================================
# INCIDENT REPORTS & ACCESS GRANTS
# ============================================================================


class IncidentReport(TableModel, table=True):
    """Incident report. Only the fields access grants need to reference."""

    __tablename__ = "incident_reports"

    id: Optional[int] = Field(default=None, primary_key=True)
    report_number: str = Field(
        sa_column=Column(String(50), nullable=False, unique=True),
    )
    report_date: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    description: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    created_by: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
            onupdate=utc_now,
        ),
    )


# Capability -> access types that satisfy it
ACCESS_TYPES_FOR_CAPABILITY = {
    AccessCapability.FULL.value: {AccessType.FULL.value},
    AccessCapability.READ_ONLY.value: {AccessType.FULL.value, AccessType.READ_ONLY.value},
    AccessCapability.INCIDENTS_ONLY.value: {AccessType.FULL.value, AccessType.INCIDENTS_ONLY.value},
    AccessCapability.CREATE.value: {AccessType.FULL.value},
    AccessCapability.UPDATE.value: {AccessType.FULL.value},
    AccessCapability.DELETE.value: {AccessType.FULL.value},
}


class IncidentReportAccess(TableModel, table=True):
    """Time-bounded access grant on one incident report or all of them.

    A null incident_report_id is a global grant; a null expires_at never
    expires. Rows are never deleted: superseded, revoked and destroyed
    grants are flipped to is_active=False, which is terminal.
    """

    __tablename__ = "incident_report_access"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        description="Grantee",
    )
    incident_report_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("incident_reports.id", ondelete="CASCADE"),
            nullable=True,
        ),
        description="Report scope, NULL for global access",
    )
    granted_by: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    access_type: str = Field(
        default=AccessType.READ_ONLY.value,
        sa_column=Column(String(20), nullable=False),
        description="full, read_only or incidents_only",
    )
    notes: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
        description="NULL never expires",
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
            onupdate=utc_now,
        ),
    )

    user: Optional["User"] = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "IncidentReportAccess.user_id",
        }
    )
    granter: Optional["User"] = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "IncidentReportAccess.granted_by",
        }
    )
    incident_report: Optional["IncidentReport"] = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "IncidentReportAccess.incident_report_id",
        }
    )

    __table_args__ = (
        Index("ix_incident_report_access_user_active", "user_id", "is_active"),
        Index("ix_incident_report_access_report_id", "incident_report_id"),
        Index("ix_incident_report_access_expires_at", "expires_at"),
        Index("ix_incident_report_access_created_at", "created_at"),
    )

    @property
    def is_global(self) -> bool:
        return self.incident_report_id is None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utc_now())

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Active and not past its expiry. Expiry is evaluated at read time."""
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > (now or utc_now())

    def has_access_type(self, capability: str, now: Optional[datetime] = None) -> bool:
        if not self.is_valid(now):
            return False
        allowed = ACCESS_TYPES_FOR_CAPABILITY.get(str(getattr(capability, "value", capability)))
        return bool(allowed) and self.access_type in allowed


# At most one active row per (user, scope); COALESCE folds global grants into scope 0.
_access_table = IncidentReportAccess.__table__
Index(
    "uq_incident_report_access_active_scope",
    _access_table.c.user_id,
    func.coalesce(_access_table.c.incident_report_id, 0),
    unique=True,
    postgresql_where=_access_table.c.is_active,
    sqlite_where=_access_table.c.is_active,
)


# ============================================================================
# MEETINGS
# ============================================================================


class Meeting(TableModel, table=True):
    """Scheduled meeting that participants join over WebRTC."""

    __tablename__ = "meetings"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    meeting_code: str = Field(
        sa_column=Column(String(50), nullable=False, unique=True),
        description="Shareable join code",
    )
    scheduled_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    duration_minutes: int = Field(default=60)
    is_recurring: bool = Field(
        default=False,
        sa_column=Column(Boolean, default=False, nullable=False),
    )
    status: str = Field(
        default=MeetingStatus.SCHEDULED.value,
        sa_column=Column(String(20), nullable=False, server_default=MeetingStatus.SCHEDULED.value),
    )
    created_by: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    offline_enabled: bool = Field(
        default=False,
        sa_column=Column(Boolean, default=False, nullable=False),
        description="Whether peers may queue signals and messages while disconnected",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
            onupdate=utc_now,
        ),
    )

    __table_args__ = (
        Index("ix_meetings_status", "status"),
        Index("ix_meetings_scheduled_at", "scheduled_at"),
    )


class MeetingParticipant(TableModel, table=True):
    """Membership of a user in a meeting. Gates signaling and chat."""

    __tablename__ = "meeting_participants"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
        ),
    )
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
    )
    role: str = Field(
        default=ParticipantRole.PARTICIPANT.value,
        sa_column=Column(String(20), nullable=False),
    )
    status: str = Field(
        default=ParticipantStatus.INVITED.value,
        sa_column=Column(String(20), nullable=False),
    )
    joined_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    left_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )

    __table_args__ = (
        Index("ix_meeting_participants_unique", "meeting_id", "user_id", unique=True),
        Index("ix_meeting_participants_user_id", "user_id"),
    )


class MeetingSession(TableModel, table=True):
    """One participant's live connection state within one meeting.

    Keyed by (meeting_id, user_id); re-initializing replaces the peer id
    and clears the candidate and connection rows of the previous run.
    """

    __tablename__ = "meeting_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
        ),
    )
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
    )
    peer_id: str = Field(
        sa_column=Column(String(100), nullable=False),
        description="Client-chosen WebRTC peer identifier",
    )
    session_data: Optional[dict] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="user_agent, ip and is_offline captured at init",
    )
    offline_data: Optional[dict] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="Opaque client state persisted by sync",
    )
    session_started_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    session_ended_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    last_heartbeat: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
        description="Last heartbeat timestamp from client (for stale session detection)",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
            onupdate=utc_now,
        ),
    )

    user: Optional["User"] = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "MeetingSession.user_id",
        }
    )

    __table_args__ = (
        Index("ix_meeting_sessions_unique", "meeting_id", "user_id", unique=True),
        Index("ix_meeting_sessions_meeting_peer", "meeting_id", "peer_id"),
        Index("ix_meeting_sessions_ended_at", "session_ended_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.session_started_at is not None and self.session_ended_at is None

    @property
    def last_activity(self) -> Optional[datetime]:
        return self.last_heartbeat or self.session_started_at


class MeetingIceCandidate(TableModel, table=True):
    """ICE candidate gathered by a session, kept in submission order."""

    __tablename__ = "meeting_ice_candidates"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meeting_sessions.id", ondelete="CASCADE"), nullable=False
        ),
    )
    position: int = Field(default=0)
    candidate: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime, nullable=False)
    )

    __table_args__ = (
        Index("ix_meeting_ice_candidates_session", "session_id", "position"),
    )


class MeetingPeerConnection(TableModel, table=True):
    """Connection status of a session towards one remote peer."""

    __tablename__ = "meeting_peer_connections"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meeting_sessions.id", ondelete="CASCADE"), nullable=False
        ),
    )
    remote_peer_id: str = Field(sa_column=Column(String(100), nullable=False))
    status: str = Field(
        default=PeerConnectionStatus.CONNECTING.value,
        sa_column=Column(String(20), nullable=False),
    )
    last_activity: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime, nullable=False)
    )

    __table_args__ = (
        Index(
            "ix_meeting_peer_connections_unique",
            "session_id",
            "remote_peer_id",
            unique=True,
        ),
    )


class MeetingPendingSignal(TableModel, table=True):
    """Signal envelope held for pickup through offline sync.

    holder_session_id is the session whose offline store keeps the
    envelope; lookups go by (meeting_id, receiver_peer_id).
    """

    __tablename__ = "meeting_pending_signals"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
        ),
    )
    holder_session_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meeting_sessions.id", ondelete="CASCADE"), nullable=False
        ),
    )
    sender_peer_id: str = Field(sa_column=Column(String(100), nullable=False))
    receiver_peer_id: str = Field(sa_column=Column(String(100), nullable=False))
    signal_type: str = Field(sa_column=Column(String(20), nullable=False))
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    is_offline: bool = Field(
        default=False,
        sa_column=Column(Boolean, default=False, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime, nullable=False)
    )

    __table_args__ = (
        Index("ix_meeting_pending_signals_receiver", "meeting_id", "receiver_peer_id"),
        Index("ix_meeting_pending_signals_holder", "holder_session_id"),
    )

    def to_envelope(self) -> dict:
        return {
            "meeting_id": self.meeting_id,
            "sender_peer_id": self.sender_peer_id,
            "receiver_peer_id": self.receiver_peer_id,
            "type": self.signal_type,
            "payload": self.payload,
            "is_offline": self.is_offline,
            "timestamp": self.created_at,
        }


class MeetingMessage(TableModel, table=True):
    """Append-only chat message within a meeting."""

    __tablename__ = "meeting_messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
        ),
    )
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
    )
    message: str = Field(sa_column=Column(Text, nullable=False))
    is_offline: bool = Field(
        default=False,
        sa_column=Column(Boolean, default=False, nullable=False),
        description="Written while the author was disconnected and replayed by sync",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
        description="Client-supplied for replayed offline messages",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
            onupdate=utc_now,
        ),
    )

    user: Optional["User"] = Relationship(
        sa_relationship_kwargs={
            "lazy": "selectin",
            "foreign_keys": "MeetingMessage.user_id",
        }
    )

    __table_args__ = (
        Index("ix_meeting_messages_meeting_created", "meeting_id", "created_at"),
    )
