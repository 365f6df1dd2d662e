"""
Meeting Message Repository - append-only chat log of a meeting.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db import MeetingMessage, utc_now
from repositories.base_repository import BaseRepository


class MeetingMessageRepository(BaseRepository[MeetingMessage]):
    """Repository for meeting chat messages."""

    model = MeetingMessage

    @staticmethod
    async def create_message(
        db: AsyncSession,
        meeting_id: int,
        user_id: int,
        message: str,
        is_offline: bool = False,
        created_at: Optional[datetime] = None,
    ) -> MeetingMessage:
        """Append a message and load its author."""
        record = MeetingMessage(
            meeting_id=meeting_id,
            user_id=user_id,
            message=message,
            is_offline=is_offline,
            created_at=created_at or utc_now(),
        )
        db.add(record)
        await db.flush()
        await db.refresh(record, ["user"])
        return record

    @staticmethod
    async def list_for_meeting(db: AsyncSession, meeting_id: int) -> List[MeetingMessage]:
        """All messages of a meeting, oldest first."""
        result = await db.execute(
            select(MeetingMessage)
            .where(MeetingMessage.meeting_id == meeting_id)
            .options(selectinload(MeetingMessage.user))
            .order_by(MeetingMessage.created_at, MeetingMessage.id)
        )
        return list(result.scalars().all())
