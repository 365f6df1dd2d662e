"""
Business logic services.
"""
from .access_grant_service import AccessGrantService
from .meeting_message_service import MeetingMessageService
from .signaling_service import SignalingService

__all__ = [
    "AccessGrantService",
    "MeetingMessageService",
    "SignalingService",
]
