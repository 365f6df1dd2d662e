"""
Model enums for database models.

These enums back string columns that:
- Have a fixed, small set of values
- Are never modified at runtime
- Don't require admin management
"""
from enum import Enum


class AccessType(str, Enum):
    """
    Capability level stored on an incident report access grant.

    Used by IncidentReportAccess.access_type field.
    """
    FULL = "full"
    READ_ONLY = "read_only"
    INCIDENTS_ONLY = "incidents_only"


class AccessCapability(str, Enum):
    """
    Capability requested when checking a grant.

    The first three mirror AccessType; the write capabilities
    are only satisfied by a full grant.
    """
    FULL = "full"
    READ_ONLY = "read_only"
    INCIDENTS_ONLY = "incidents_only"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class GrantStatusFilter(str, Enum):
    """Status filter accepted by the grant listing."""
    ACTIVE = "active"
    EXPIRED = "expired"
    INACTIVE = "inactive"


class GrantScope(str, Enum):
    """Scope filter accepted by the grant listing."""
    GLOBAL = "global"
    SPECIFIC = "specific"


class MeetingStatus(str, Enum):
    """
    Meeting lifecycle status.

    Used by Meeting.status field.
    """
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantRole(str, Enum):
    """Used by MeetingParticipant.role field."""
    HOST = "host"
    CO_HOST = "co-host"
    PARTICIPANT = "participant"


class ParticipantStatus(str, Enum):
    """Used by MeetingParticipant.status field."""
    INVITED = "invited"
    JOINED = "joined"
    LEFT = "left"


class SignalType(str, Enum):
    """
    WebRTC negotiation message type relayed between peers.

    Used by MeetingPendingSignal.signal_type field.
    """
    OFFER = "offer"
    ANSWER = "answer"
    CANDIDATE = "candidate"


class PeerConnectionStatus(str, Enum):
    """
    Connection state tracked per (session, remote peer).

    An answer completes negotiation; anything else is still connecting.
    """
    CONNECTING = "connecting"
    CONNECTED = "connected"

    @classmethod
    def from_signal(cls, signal_type: str) -> "PeerConnectionStatus":
        if signal_type == SignalType.ANSWER.value:
            return cls.CONNECTED
        return cls.CONNECTING
