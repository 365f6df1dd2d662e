"""
Meeting Repository - meetings and participant membership.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db import Meeting, MeetingParticipant
from repositories.base_repository import BaseRepository


class MeetingRepository(BaseRepository[Meeting]):
    """Repository for meetings."""

    model = Meeting

    @staticmethod
    async def is_participant(db: AsyncSession, meeting_id: int, user_id: int) -> bool:
        """Whether the user is listed as a participant of the meeting."""
        result = await db.execute(
            select(MeetingParticipant.id).where(
                MeetingParticipant.meeting_id == meeting_id,
                MeetingParticipant.user_id == user_id,
            )
        )
        return result.scalar_one_or_none() is not None
