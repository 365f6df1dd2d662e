"""
Repository layer for database operations.

This package contains all data access logic isolated from business logic.
Each repository handles the statements for a specific entity.
"""

from repositories.base_repository import BaseRepository
from repositories.incident_report_access_repository import IncidentReportAccessRepository
from repositories.meeting_message_repository import MeetingMessageRepository
from repositories.meeting_repository import MeetingRepository
from repositories.meeting_session_repository import MeetingSessionRepository
from repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "IncidentReportAccessRepository",
    "MeetingMessageRepository",
    "MeetingRepository",
    "MeetingSessionRepository",
    "UserRepository",
]
