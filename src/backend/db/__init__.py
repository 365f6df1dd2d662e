"""
Database models using SQLModel.

This module re-exports all table models and enums so callers can write
`from db import User, MeetingSession`.
"""
from .models import (
    # Users & roles
    Role,
    UserRole,
    User,

    # Incident report access
    IncidentReport,
    IncidentReportAccess,
    ACCESS_TYPES_FOR_CAPABILITY,

    # Meetings
    Meeting,
    MeetingParticipant,
    MeetingSession,
    MeetingIceCandidate,
    MeetingPeerConnection,
    MeetingPendingSignal,
    MeetingMessage,

    # Utilities
    utc_now,
)

from .enums import (
    AccessType,
    AccessCapability,
    GrantStatusFilter,
    GrantScope,
    MeetingStatus,
    ParticipantRole,
    ParticipantStatus,
    SignalType,
    PeerConnectionStatus,
)

__all__ = [
    # Enums
    "AccessType",
    "AccessCapability",
    "GrantStatusFilter",
    "GrantScope",
    "MeetingStatus",
    "ParticipantRole",
    "ParticipantStatus",
    "SignalType",
    "PeerConnectionStatus",

    # Users & roles
    "Role",
    "UserRole",
    "User",

    # Incident report access
    "IncidentReport",
    "IncidentReportAccess",
    "ACCESS_TYPES_FOR_CAPABILITY",

    # Meetings
    "Meeting",
    "MeetingParticipant",
    "MeetingSession",
    "MeetingIceCandidate",
    "MeetingPeerConnection",
    "MeetingPendingSignal",
    "MeetingMessage",

    # Utilities
    "utc_now",
]
