"""
Meeting chat message schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from api.schemas.user import UserSummary
from core.schema_base import HTTPSchemaModel


class MeetingMessageCreate(HTTPSchemaModel):
    message: str = Field(..., min_length=1)
    is_offline: bool = False


class MeetingMessageRead(HTTPSchemaModel):
    id: int
    meeting_id: int
    user_id: int
    message: str
    is_offline: bool
    created_at: datetime
    user: Optional[UserSummary] = None


class SendMessageResponse(HTTPSchemaModel):
    success: bool
    message: MeetingMessageRead


class MeetingMessageList(HTTPSchemaModel):
    messages: List[MeetingMessageRead]
