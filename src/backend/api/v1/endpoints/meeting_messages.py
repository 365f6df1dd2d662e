"""
Meeting chat API endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.meeting_message import (
    MeetingMessageCreate,
    MeetingMessageList,
    MeetingMessageRead,
    SendMessageResponse,
)
from api.v1.errors import access_denied_http_error, not_found_http_error
from core.config import settings
from core.database import get_session
from core.dependencies import get_current_user
from db import User
from services.exceptions import MeetingAccessDeniedError, NotFoundError
from services.meeting_message_service import MeetingMessageService

logger = logging.getLogger(__name__)

# Rate limiter for chat endpoints
limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


@router.post("/meetings/{meeting_id}/messages", response_model=SendMessageResponse)
@limiter.limit(settings.meeting.message_rate_limit)
async def send_message(
    request: Request,  # Must be first param for rate limiter
    meeting_id: int,
    message_data: MeetingMessageCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Post a chat message to a meeting (rate limited per IP).

    Live messages are broadcast to the meeting room; offline ones are
    stored only.

    **Raises:**
        HTTPException 404: Meeting not found
        HTTPException 403: Caller is not a participant
        HTTPException 429: Rate limit exceeded
    """
    try:
        message = await MeetingMessageService.send_message(
            db,
            meeting_id=meeting_id,
            user=current_user,
            message=message_data.message,
            is_offline=message_data.is_offline,
        )
    except NotFoundError as e:
        raise not_found_http_error(e)
    except MeetingAccessDeniedError as e:
        raise access_denied_http_error(e)

    return SendMessageResponse(
        success=True,
        message=MeetingMessageRead.model_validate(message),
    )


@router.get("/meetings/{meeting_id}/messages", response_model=MeetingMessageList)
async def get_messages(
    meeting_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Chat history of a meeting, oldest first."""
    try:
        messages = await MeetingMessageService.get_messages(db, meeting_id, current_user.id)
    except NotFoundError as e:
        raise not_found_http_error(e)
    except MeetingAccessDeniedError as e:
        raise access_denied_http_error(e)

    return MeetingMessageList(
        messages=[MeetingMessageRead.model_validate(message) for message in messages]
    )
