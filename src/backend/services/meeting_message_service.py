"""
Meeting Message Service - chat messages exchanged inside a meeting.

Messages are append-only. Live messages are fanned out to the meeting
room; messages written while offline are only persisted and reach other
participants through the next history fetch.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.services.event_publisher import publish_event
from api.services.event_types import EventType, meeting_room
from core.decorators import (
    critical_database_operation,
    log_database_operation,
    transactional_database_operation,
)
from core.metrics import track_meeting_message
from db import Meeting, MeetingMessage, User
from repositories.meeting_message_repository import MeetingMessageRepository
from repositories.meeting_repository import MeetingRepository
from services.exceptions import MeetingAccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)


def user_summary(user: Optional[User]) -> Optional[dict]:
    """Author fields shared with other participants."""
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
    }


async def ensure_participant(
    db: AsyncSession, meeting_id: int, user_id: int, denied_message: str
) -> Meeting:
    """Load a meeting and check the user takes part in it.

    Raises:
        NotFoundError: Unknown meeting
        MeetingAccessDeniedError: User is not a participant
    """
    meeting = await MeetingRepository.find_by_id(db, meeting_id)
    if not meeting:
        raise NotFoundError("Meeting not found")

    if not await MeetingRepository.is_participant(db, meeting_id, user_id):
        raise MeetingAccessDeniedError(denied_message)

    return meeting


class MeetingMessageService:
    """Service for the meeting chat log."""

    @staticmethod
    @log_database_operation("persist_meeting_message")
    @transactional_database_operation("persist_meeting_message")
    @critical_database_operation
    async def _persist_message(
        db: AsyncSession,
        meeting_id: int,
        user_id: int,
        message: str,
        is_offline: bool,
    ) -> MeetingMessage:
        await ensure_participant(
            db, meeting_id, user_id, "Unauthorized to send messages in this meeting"
        )
        return await MeetingMessageRepository.create_message(
            db,
            meeting_id=meeting_id,
            user_id=user_id,
            message=message,
            is_offline=is_offline,
        )

    @staticmethod
    async def send_message(
        db: AsyncSession,
        meeting_id: int,
        user: User,
        message: str,
        is_offline: bool = False,
    ) -> MeetingMessage:
        """
        Persist a chat message and broadcast it to the meeting room.

        The broadcast happens after commit and is skipped for offline
        messages; a failed broadcast does not fail the send.
        """
        record = await MeetingMessageService._persist_message(
            db, meeting_id, user.id, message, is_offline
        )
        track_meeting_message(is_offline)

        if not is_offline:
            delivered = await publish_event(
                EventType.MEETING_MESSAGE,
                meeting_room(meeting_id),
                {
                    "meeting_id": meeting_id,
                    "user": user_summary(user),
                    "message": {
                        "id": record.id,
                        "content": record.message,
                        "created_at": record.created_at,
                    },
                },
            )
            if not delivered:
                logger.warning(
                    f"Meeting message {record.id} stored but not broadcast to meeting {meeting_id}"
                )

        return record

    @staticmethod
    @critical_database_operation
    async def get_messages(
        db: AsyncSession, meeting_id: int, user_id: int
    ) -> List[MeetingMessage]:
        """All messages of a meeting, oldest first, with their authors."""
        await ensure_participant(
            db, meeting_id, user_id, "Unauthorized to view messages in this meeting"
        )
        return await MeetingMessageRepository.list_for_meeting(db, meeting_id)

    @staticmethod
    async def record_offline_message(
        db: AsyncSession,
        meeting_id: int,
        user_id: int,
        content: str,
        created_at: Optional[datetime] = None,
    ) -> MeetingMessage:
        """
        Append a message written while the author was disconnected.

        The client timestamp is kept as the message time so replayed
        messages sort where they were written. Runs in the caller's
        transaction.
        """
        record = await MeetingMessageRepository.create_message(
            db,
            meeting_id=meeting_id,
            user_id=user_id,
            message=content,
            is_offline=True,
            created_at=created_at,
        )
        track_meeting_message(is_offline=True)
        return record
