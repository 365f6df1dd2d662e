"""
WebRTC signaling API endpoints for meetings.

**Architecture:**
- Media flows peer to peer; this API only brokers negotiation
- Session rows map (meeting, user) to a peer id and hold ICE candidates
  and per-peer connection status
- Offers/answers/candidates are relayed to the receiver's peer room via
  the event stream, or held as pending signals for offline sync

**Session Lifecycle:**
1. Init: participant registers a peer id, gets the other active peers
2. Signal: peers exchange offer/answer/candidate messages
3. Heartbeat: client reports liveness; silent sessions are ended by a sweep
4. End: participant leaves, the meeting room is told
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.webrtc import (
    HeartbeatResponse,
    IceCandidatesRequest,
    OfflineSyncRequest,
    OfflineSyncResponse,
    SessionInitRequest,
    SessionInitResponse,
    SignalRequest,
    SignalResponse,
    SuccessResponse,
)
from api.v1.errors import (
    access_denied_http_error,
    field_validation_http_error,
    not_found_http_error,
)
from core.database import get_session
from core.dependencies import get_client_ip, get_current_user, get_user_agent
from db import User
from services.exceptions import (
    FieldValidationError,
    MeetingAccessDeniedError,
    NotFoundError,
)
from services.signaling_service import SignalingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/meetings/{meeting_id}/webrtc/init", response_model=SessionInitResponse)
async def init_session(
    request: Request,
    meeting_id: int,
    init_data: SessionInitRequest,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Start or restart the caller's WebRTC session in a meeting.

    Re-initializing replaces the peer id and clears the ICE candidates
    and peer connections of the previous run.

    **Permission:** Meeting participants

    **Returns:**
        - session_id: Session to use for candidates, heartbeat, sync and end
        - peer_id: Registered peer id
        - active_peers: Other open sessions of the meeting
        - is_offline_enabled: Whether the meeting allows offline queuing

    **Raises:**
        HTTPException 404: Meeting not found
        HTTPException 403: Caller is not a participant
    """
    try:
        result = await SignalingService.init_session(
            db,
            meeting_id=meeting_id,
            user=current_user,
            peer_id=init_data.peer_id,
            user_agent=get_user_agent(request),
            ip_address=get_client_ip(request),
        )
    except NotFoundError as e:
        raise not_found_http_error(e)
    except MeetingAccessDeniedError as e:
        raise access_denied_http_error(e)

    return SessionInitResponse.model_validate(result)


@router.post("/webrtc/sessions/{session_id}/ice-candidates", response_model=SuccessResponse)
async def save_ice_candidates(
    session_id: int,
    candidate_data: IceCandidatesRequest,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Replace the ICE candidates of one of the caller's sessions."""
    try:
        await SignalingService.save_ice_candidates(
            db, session_id, current_user.id, candidate_data.candidates
        )
    except NotFoundError as e:
        raise not_found_http_error(e)

    return SuccessResponse()


@router.post(
    "/webrtc/signal",
    response_model=SignalResponse,
    response_model_exclude_none=True,
)
async def relay_signal(
    signal_data: SignalRequest,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Relay an offer, answer or ICE candidate to another peer of the meeting.

    **Delivery:**
    - Receiver known: relayed live; held for the receiver's next sync
      when the event stream is unavailable
    - Receiver unknown and is_offline: held on the sender session,
      response carries stored_offline=true
    - Receiver unknown otherwise: 404

    **Raises:**
        HTTPException 422: Unknown meeting or invalid body
        HTTPException 404: Sender or receiver peer not found
        HTTPException 403: Sender peer belongs to another user
    """
    try:
        result = await SignalingService.signal(
            db,
            user_id=current_user.id,
            meeting_id=signal_data.meeting_id,
            sender_peer_id=signal_data.sender_peer_id,
            receiver_peer_id=signal_data.receiver_peer_id,
            signal_type=signal_data.type.value,
            payload=signal_data.payload,
            is_offline=signal_data.is_offline,
        )
    except FieldValidationError as e:
        raise field_validation_http_error(e)
    except NotFoundError as e:
        raise not_found_http_error(e)
    except MeetingAccessDeniedError as e:
        raise access_denied_http_error(e)

    return SignalResponse(**result)


@router.post("/webrtc/sessions/{session_id}/end", response_model=SuccessResponse)
async def end_session(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """End one of the caller's sessions and announce the departure."""
    try:
        await SignalingService.end_session(db, session_id, current_user.id)
    except NotFoundError as e:
        raise not_found_http_error(e)

    return SuccessResponse()


@router.post("/webrtc/sessions/{session_id}/heartbeat", response_model=HeartbeatResponse)
async def session_heartbeat(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Keep a session alive. Sessions without heartbeats are ended by the cleanup job."""
    try:
        last_heartbeat = await SignalingService.heartbeat(db, session_id, current_user.id)
    except NotFoundError as e:
        raise not_found_http_error(e)

    return HeartbeatResponse(last_heartbeat=last_heartbeat)


@router.post("/webrtc/sessions/{session_id}/sync", response_model=OfflineSyncResponse)
async def sync_offline_data(
    session_id: int,
    sync_data: OfflineSyncRequest,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Upload state gathered while disconnected.

    Stores offline_data on the session, replays queued chat messages
    (client timestamps are kept) and returns the signals other peers left
    for this session's peer id.
    """
    try:
        result = await SignalingService.sync_offline_data(
            db,
            session_id=session_id,
            user_id=current_user.id,
            offline_data=sync_data.offline_data,
            messages=[message.model_dump() for message in sync_data.messages],
        )
    except NotFoundError as e:
        raise not_found_http_error(e)

    return OfflineSyncResponse.model_validate(result)
