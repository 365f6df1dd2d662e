"""
Signaling Service - WebRTC session bookkeeping and signal relay for meetings.

Each participant holds one session per meeting, identified to other peers
by a client-chosen peer id. Offers, answers and ICE candidates are relayed
live through the event stream to the receiver's peer room. A signal that
cannot be relayed is kept as a pending signal, which the receiver picks
up through offline sync:

- receiver unknown and the sender is offline: held by the sender session
- live broadcast unavailable: held by the receiver session

Delivery is best effort. There is no acknowledgement: pending signals are
never marked delivered and are returned by every sync.

Session lifecycle:
1. init: upsert on (meeting, user), clear previous candidates/connections
2. heartbeat: refresh last_heartbeat while connected
3. end: explicit leave, or the stale-session sweep when heartbeats stop
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.services.event_publisher import publish_event
from api.services.event_types import EventType, meeting_room, peer_room
from core.config import settings
from core.decorators import (
    critical_database_operation,
    log_database_operation,
    transactional_database_operation,
)
from core.logging_config import MeetingSessionLogger
from core.metrics import (
    track_session_transition,
    track_signal_relayed,
    track_transport_fallback,
)
from db import MeetingPendingSignal, MeetingSession, PeerConnectionStatus, SignalType, User, utc_now
from repositories.meeting_repository import MeetingRepository
from repositories.meeting_session_repository import MeetingSessionRepository
from services.exceptions import (
    FieldValidationError,
    MeetingAccessDeniedError,
    NotFoundError,
)
from services.meeting_message_service import (
    MeetingMessageService,
    ensure_participant,
    user_summary,
)

logger = logging.getLogger(__name__)
session_logger = MeetingSessionLogger("signaling")

SESSION_NOT_FOUND = "Session not found"


def _peer_summary(session: MeetingSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "peer_id": session.peer_id,
        "user": user_summary(session.user),
    }


async def _get_owned_session(db: AsyncSession, session_id: int, user_id: int) -> MeetingSession:
    session = await MeetingSessionRepository.get_owned(db, session_id, user_id)
    if not session:
        raise NotFoundError(SESSION_NOT_FOUND)
    return session


class SignalingService:
    """Service for WebRTC sessions and signal relay."""

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    @log_database_operation("open_meeting_session")
    @transactional_database_operation("open_meeting_session")
    @critical_database_operation
    async def _open_session(
        db: AsyncSession,
        meeting_id: int,
        user_id: int,
        peer_id: str,
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> Dict[str, Any]:
        meeting = await ensure_participant(
            db, meeting_id, user_id, "Unauthorized to join this meeting"
        )

        session = await MeetingSessionRepository.upsert_session(
            db,
            meeting_id=meeting_id,
            user_id=user_id,
            peer_id=peer_id,
            session_data={
                "user_agent": user_agent,
                "ip": ip_address,
                "is_offline": meeting.offline_enabled,
            },
        )
        await MeetingSessionRepository.reset_signaling_state(db, session.id)

        active_peers = await MeetingSessionRepository.list_active_peers(
            db, meeting_id, exclude_user_id=user_id
        )

        return {
            "session": session,
            "active_peers": active_peers,
            "is_offline_enabled": meeting.offline_enabled,
        }

    @staticmethod
    async def init_session(
        db: AsyncSession,
        meeting_id: int,
        user: User,
        peer_id: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start (or restart) the caller's session in a meeting.

        Args:
            db: Database session
            meeting_id: Meeting to join
            user: Authenticated participant
            peer_id: Client-chosen WebRTC peer identifier
            user_agent: Client user agent, kept in session_data
            ip_address: Client IP, kept in session_data

        Returns:
            Dict with session_id, peer_id, active_peers (other open
            sessions of the meeting) and is_offline_enabled

        Raises:
            NotFoundError: Unknown meeting
            MeetingAccessDeniedError: Caller is not a participant
        """
        opened = await SignalingService._open_session(
            db, meeting_id, user.id, peer_id, user_agent, ip_address
        )
        session: MeetingSession = opened["session"]

        track_session_transition("started")
        session_logger.session_started(
            meeting_id=meeting_id,
            user_id=user.id,
            session_id=session.id,
            peer_id=session.peer_id,
            ip_address=ip_address,
        )
        logger.info(
            "AUDIT: meeting_session_started",
            extra={
                "event": "meeting_session_started",
                "session_id": session.id,
                "meeting_id": meeting_id,
                "user_id": user.id,
                "peer_id": session.peer_id,
                "ip_address": ip_address,
            },
        )

        await publish_event(
            EventType.USER_JOINED,
            meeting_room(meeting_id),
            {
                "meeting_id": meeting_id,
                "user": user_summary(user),
                "peer_id": session.peer_id,
                "joined_at": session.session_started_at,
            },
        )

        return {
            "session_id": session.id,
            "peer_id": session.peer_id,
            "active_peers": [_peer_summary(peer) for peer in opened["active_peers"]],
            "is_offline_enabled": opened["is_offline_enabled"],
        }

    @staticmethod
    @log_database_operation("save_ice_candidates")
    @transactional_database_operation("save_ice_candidates")
    @critical_database_operation
    async def save_ice_candidates(
        db: AsyncSession,
        session_id: int,
        user_id: int,
        candidates: List[Dict[str, Any]],
    ) -> int:
        """Replace the ICE candidates of a caller-owned session."""
        session = await _get_owned_session(db, session_id, user_id)
        return await MeetingSessionRepository.replace_ice_candidates(db, session.id, candidates)

    @staticmethod
    @log_database_operation("close_meeting_session")
    @transactional_database_operation("close_meeting_session")
    @critical_database_operation
    async def _close_session(
        db: AsyncSession, session_id: int, user_id: int
    ) -> MeetingSession:
        session = await _get_owned_session(db, session_id, user_id)
        await MeetingSessionRepository.end_session(db, session.id)
        return await MeetingSessionRepository.get_owned(db, session_id, user_id)

    @staticmethod
    async def end_session(db: AsyncSession, session_id: int, user_id: int) -> MeetingSession:
        """
        End a caller-owned session and tell the meeting the peer left.

        Connection rows held by other sessions towards this peer are left
        as they are.
        """
        session = await SignalingService._close_session(db, session_id, user_id)

        duration = 0.0
        if session.session_started_at and session.session_ended_at:
            duration = (session.session_ended_at - session.session_started_at).total_seconds() / 60

        track_session_transition("ended")
        session_logger.session_ended(session.id, user_id, duration)
        logger.info(
            "AUDIT: meeting_session_ended",
            extra={
                "event": "meeting_session_ended",
                "session_id": session.id,
                "meeting_id": session.meeting_id,
                "user_id": user_id,
                "peer_id": session.peer_id,
                "reason": "left",
            },
        )

        await publish_event(
            EventType.USER_LEFT,
            meeting_room(session.meeting_id),
            {
                "meeting_id": session.meeting_id,
                "peer_id": session.peer_id,
                "left_at": session.session_ended_at,
            },
        )
        return session

    @staticmethod
    @transactional_database_operation("meeting_session_heartbeat")
    @critical_database_operation
    async def heartbeat(db: AsyncSession, session_id: int, user_id: int) -> datetime:
        """
        Record that a session's client is still connected.

        Returns:
            The stored heartbeat time

        Raises:
            NotFoundError: Unknown, foreign or already ended session
        """
        session = await _get_owned_session(db, session_id, user_id)
        if not session.is_active:
            raise NotFoundError("Session is not active")

        now = utc_now()
        await MeetingSessionRepository.touch_heartbeat(db, session.id, now)
        session_logger.heartbeat_received(session.id, user_id)
        return now

    # ------------------------------------------------------------------
    # Signal relay
    # ------------------------------------------------------------------

    @staticmethod
    @log_database_operation("record_signal")
    @transactional_database_operation("record_signal")
    @critical_database_operation
    async def _record_signal(
        db: AsyncSession,
        user_id: int,
        meeting_id: int,
        sender_peer_id: str,
        receiver_peer_id: str,
        signal_type: str,
        payload: Any,
        is_offline: bool,
    ) -> Dict[str, Any]:
        """Validate the peers and write the sender's side of the exchange."""
        if not await MeetingRepository.exists(db, meeting_id):
            raise FieldValidationError("meeting_id", "The selected meeting id is invalid.")

        sender = await MeetingSessionRepository.get_by_peer(db, meeting_id, sender_peer_id)
        if not sender:
            raise NotFoundError("Sender peer not found")
        if sender.user_id != user_id:
            raise MeetingAccessDeniedError("Unauthorized to signal for this peer")

        receiver = await MeetingSessionRepository.get_by_peer(db, meeting_id, receiver_peer_id)

        if not receiver:
            if not is_offline:
                raise NotFoundError("Receiver peer not found")

            await MeetingSessionRepository.add_pending_signal(
                db,
                meeting_id=meeting_id,
                holder_session_id=sender.id,
                sender_peer_id=sender_peer_id,
                receiver_peer_id=receiver_peer_id,
                signal_type=signal_type,
                payload=payload,
                is_offline=True,
            )
            session_logger.signal_queued(
                sender.id, sender_peer_id, receiver_peer_id, signal_type, "receiver_unknown"
            )
            return {"stored_offline": True, "receiver_session_id": None}

        await MeetingSessionRepository.upsert_peer_connection(
            db,
            session_id=sender.id,
            remote_peer_id=receiver_peer_id,
            status=PeerConnectionStatus.from_signal(signal_type).value,
        )
        return {"stored_offline": False, "receiver_session_id": receiver.id}

    @staticmethod
    @log_database_operation("hold_undelivered_signal")
    @transactional_database_operation("hold_undelivered_signal")
    @critical_database_operation
    async def _hold_undelivered_signal(
        db: AsyncSession,
        meeting_id: int,
        receiver_session_id: int,
        sender_peer_id: str,
        receiver_peer_id: str,
        signal_type: str,
        payload: Any,
        is_offline: bool,
    ) -> None:
        await MeetingSessionRepository.add_pending_signal(
            db,
            meeting_id=meeting_id,
            holder_session_id=receiver_session_id,
            sender_peer_id=sender_peer_id,
            receiver_peer_id=receiver_peer_id,
            signal_type=signal_type,
            payload=payload,
            is_offline=is_offline,
        )
        session_logger.signal_queued(
            receiver_session_id, sender_peer_id, receiver_peer_id, signal_type, "broadcast_unavailable"
        )

    @staticmethod
    async def signal(
        db: AsyncSession,
        user_id: int,
        meeting_id: int,
        sender_peer_id: str,
        receiver_peer_id: str,
        signal_type: str,
        payload: Any,
        is_offline: bool = False,
    ) -> Dict[str, Any]:
        """
        Relay an offer, answer or ICE candidate to another peer of the meeting.

        The sender's connection row is committed before the live event is
        published. When the event stream is unavailable the signal is then
        held for the receiver in a second transaction.

        Returns:
            {"success": True}, plus "stored_offline": True when the signal
            was held for a receiver that has no session

        Raises:
            FieldValidationError: Unknown meeting
            NotFoundError: Unknown sender peer, or unknown receiver peer
                while the sender is online
            MeetingAccessDeniedError: Sender peer belongs to another user
        """
        signal_type = SignalType(signal_type).value

        recorded = await SignalingService._record_signal(
            db,
            user_id,
            meeting_id,
            sender_peer_id,
            receiver_peer_id,
            signal_type,
            payload,
            is_offline,
        )

        if recorded["stored_offline"]:
            track_transport_fallback("receiver_unknown")
            track_signal_relayed(signal_type, delivered_live=False)
            return {"success": True, "stored_offline": True}

        delivered = await publish_event(
            EventType.WEBRTC_SIGNAL,
            peer_room(receiver_peer_id),
            {
                "meeting_id": meeting_id,
                "sender_peer_id": sender_peer_id,
                "receiver_peer_id": receiver_peer_id,
                "type": signal_type,
                "payload": payload,
                "timestamp": utc_now(),
            },
        )

        if not delivered:
            await SignalingService._hold_undelivered_signal(
                db,
                meeting_id,
                recorded["receiver_session_id"],
                sender_peer_id,
                receiver_peer_id,
                signal_type,
                payload,
                is_offline,
            )
            track_transport_fallback("broadcast_unavailable")

        track_signal_relayed(signal_type, delivered_live=delivered)
        return {"success": True}

    # ------------------------------------------------------------------
    # Offline sync
    # ------------------------------------------------------------------

    @staticmethod
    @log_database_operation("sync_offline_data")
    @transactional_database_operation("sync_offline_data")
    @critical_database_operation
    async def sync_offline_data(
        db: AsyncSession,
        session_id: int,
        user_id: int,
        offline_data: Dict[str, Any],
        messages: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Store client state gathered while disconnected and hand back signals
        other peers left for this session's peer id.

        Args:
            db: Database session
            session_id: Caller-owned session
            user_id: Caller
            offline_data: Opaque client state, replaces the stored value
            messages: Chat messages written offline; entries without
                content are skipped, timestamp (naive UTC) defaults to now

        Returns:
            Dict with success, replayed_messages and pending_signals
        """
        session = await _get_owned_session(db, session_id, user_id)

        await MeetingSessionRepository.save_offline_data(db, session.id, offline_data)

        replayed = 0
        for entry in messages or []:
            content = entry.get("content")
            if not content:
                continue
            await MeetingMessageService.record_offline_message(
                db,
                meeting_id=session.meeting_id,
                user_id=user_id,
                content=content,
                created_at=entry.get("timestamp"),
            )
            replayed += 1

        pending: List[MeetingPendingSignal] = await MeetingSessionRepository.list_pending_signals_for_peer(
            db,
            meeting_id=session.meeting_id,
            receiver_peer_id=session.peer_id,
            exclude_user_id=user_id,
        )

        if replayed or pending:
            logger.info(
                f"Offline sync for session {session.id}: {replayed} messages replayed, "
                f"{len(pending)} pending signals returned"
            )

        return {
            "success": True,
            "replayed_messages": replayed,
            "pending_signals": [signal.to_envelope() for signal in pending],
        }

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    @staticmethod
    @log_database_operation("end_stale_sessions")
    @transactional_database_operation("end_stale_sessions")
    @critical_database_operation
    async def _end_stale_sessions(db: AsyncSession, cutoff: datetime) -> List[MeetingSession]:
        stale = await MeetingSessionRepository.find_stale_sessions(db, cutoff)
        now = utc_now()

        for session in stale:
            last_activity = session.last_activity or cutoff
            await MeetingSessionRepository.end_session(db, session.id, now)
            session_logger.stale_session_cleaned(
                session.id,
                session.user_id,
                last_activity,
                (now - last_activity).total_seconds() / 60,
            )

        return stale

    @staticmethod
    async def cleanup_stale_sessions(
        db: AsyncSession, timeout_minutes: Optional[int] = None
    ) -> int:
        """
        End sessions that stopped sending heartbeats and announce their departure.

        Args:
            db: Database session
            timeout_minutes: Inactivity allowed before a session is ended
                (defaults to MEETING_SESSION_TIMEOUT_MINUTES)

        Returns:
            Number of sessions ended
        """
        timeout = timeout_minutes or settings.meeting.session_timeout_minutes
        cutoff = utc_now() - timedelta(minutes=timeout)

        stale = await SignalingService._end_stale_sessions(db, cutoff)
        if not stale:
            return 0

        track_session_transition("timed_out", len(stale))
        for session in stale:
            logger.info(
                "AUDIT: meeting_session_ended",
                extra={
                    "event": "meeting_session_ended",
                    "session_id": session.id,
                    "meeting_id": session.meeting_id,
                    "user_id": session.user_id,
                    "peer_id": session.peer_id,
                    "reason": "timeout",
                },
            )
            await publish_event(
                EventType.USER_LEFT,
                meeting_room(session.meeting_id),
                {
                    "meeting_id": session.meeting_id,
                    "peer_id": session.peer_id,
                    "left_at": session.session_ended_at,
                },
            )

        logger.info(f"Stale session cleanup ended {len(stale)} sessions (timeout {timeout} min)")
        return len(stale)
