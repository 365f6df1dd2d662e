"""
Meeting Session Repository - Data access layer for WebRTC signaling state.

Sessions are keyed by (meeting, user). Candidate lists, per-peer
connection status and pending signals are rows of their own, so
concurrent writers for one session never overwrite each other.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import dialect_insert
from db import (
    MeetingIceCandidate,
    MeetingPeerConnection,
    MeetingPendingSignal,
    MeetingSession,
    utc_now,
)
from repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MeetingSessionRepository(BaseRepository[MeetingSession]):
    """Repository for meeting sessions and their signaling rows."""

    model = MeetingSession

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @staticmethod
    async def upsert_session(
        db: AsyncSession,
        meeting_id: int,
        user_id: int,
        peer_id: str,
        session_data: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> MeetingSession:
        """Insert or restart the session of (meeting, user) in one statement."""
        now = now or utc_now()
        values = {
            "peer_id": peer_id,
            "session_data": session_data,
            "session_started_at": now,
            "session_ended_at": None,
            "last_heartbeat": now,
            "updated_at": now,
        }

        stmt = dialect_insert(db, MeetingSession.__table__).values(
            meeting_id=meeting_id,
            user_id=user_id,
            created_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["meeting_id", "user_id"],
            set_=values,
        )
        await db.execute(stmt)
        await db.flush()

        result = await db.execute(
            select(MeetingSession)
            .where(
                MeetingSession.meeting_id == meeting_id,
                MeetingSession.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    async def get_owned(
        db: AsyncSession, session_id: int, user_id: int
    ) -> Optional[MeetingSession]:
        """Session by id, only if it belongs to the user."""
        result = await db.execute(
            select(MeetingSession)
            .where(
                MeetingSession.id == session_id,
                MeetingSession.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_peer(
        db: AsyncSession, meeting_id: int, peer_id: str
    ) -> Optional[MeetingSession]:
        """Most recently started session holding this peer id in the meeting."""
        result = await db.execute(
            select(MeetingSession)
            .where(
                MeetingSession.meeting_id == meeting_id,
                MeetingSession.peer_id == peer_id,
            )
            .order_by(desc(MeetingSession.session_started_at), desc(MeetingSession.id))
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_peers(
        db: AsyncSession, meeting_id: int, exclude_user_id: int
    ) -> List[MeetingSession]:
        """Started, not ended sessions of the meeting except the caller's."""
        result = await db.execute(
            select(MeetingSession)
            .where(
                MeetingSession.meeting_id == meeting_id,
                MeetingSession.user_id != exclude_user_id,
                MeetingSession.session_started_at.is_not(None),
                MeetingSession.session_ended_at.is_(None),
            )
            .order_by(MeetingSession.session_started_at, MeetingSession.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def end_session(
        db: AsyncSession, session_id: int, now: Optional[datetime] = None
    ) -> None:
        now = now or utc_now()
        await db.execute(
            update(MeetingSession)
            .where(MeetingSession.id == session_id)
            .values(session_ended_at=now, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()

    @staticmethod
    async def touch_heartbeat(
        db: AsyncSession, session_id: int, now: Optional[datetime] = None
    ) -> None:
        await db.execute(
            update(MeetingSession)
            .where(MeetingSession.id == session_id)
            .values(last_heartbeat=now or utc_now())
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()

    @staticmethod
    async def save_offline_data(
        db: AsyncSession, session_id: int, offline_data: Dict[str, Any]
    ) -> None:
        await db.execute(
            update(MeetingSession)
            .where(MeetingSession.id == session_id)
            .values(offline_data=offline_data, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()

    @staticmethod
    async def find_stale_sessions(
        db: AsyncSession, cutoff: datetime, limit: int = 500
    ) -> List[MeetingSession]:
        """Active sessions whose last heartbeat (or start) is older than cutoff."""
        last_activity = func.coalesce(
            MeetingSession.last_heartbeat, MeetingSession.session_started_at
        )
        result = await db.execute(
            select(MeetingSession)
            .where(
                MeetingSession.session_started_at.is_not(None),
                MeetingSession.session_ended_at.is_(None),
                last_activity < cutoff,
            )
            .order_by(last_activity)
            .limit(limit)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # ICE candidates and peer connections
    # ------------------------------------------------------------------

    @staticmethod
    async def reset_signaling_state(db: AsyncSession, session_id: int) -> None:
        """Drop candidates and connection rows left by a previous run."""
        await db.execute(
            delete(MeetingIceCandidate).where(MeetingIceCandidate.session_id == session_id)
        )
        await db.execute(
            delete(MeetingPeerConnection).where(MeetingPeerConnection.session_id == session_id)
        )
        await db.flush()

    @staticmethod
    async def replace_ice_candidates(
        db: AsyncSession, session_id: int, candidates: List[Dict[str, Any]]
    ) -> int:
        await db.execute(
            delete(MeetingIceCandidate).where(MeetingIceCandidate.session_id == session_id)
        )
        db.add_all(
            MeetingIceCandidate(session_id=session_id, position=position, candidate=candidate)
            for position, candidate in enumerate(candidates)
        )
        await db.flush()
        return len(candidates)

    @staticmethod
    async def upsert_peer_connection(
        db: AsyncSession,
        session_id: int,
        remote_peer_id: str,
        status: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Set the status towards one remote peer without touching the others."""
        now = now or utc_now()
        stmt = dialect_insert(db, MeetingPeerConnection.__table__).values(
            session_id=session_id,
            remote_peer_id=remote_peer_id,
            status=status,
            last_activity=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["session_id", "remote_peer_id"],
            set_={"status": status, "last_activity": now},
        )
        await db.execute(stmt)
        await db.flush()

    # ------------------------------------------------------------------
    # Pending signals
    # ------------------------------------------------------------------

    @staticmethod
    async def add_pending_signal(
        db: AsyncSession,
        meeting_id: int,
        holder_session_id: int,
        sender_peer_id: str,
        receiver_peer_id: str,
        signal_type: str,
        payload: Optional[Dict[str, Any]],
        is_offline: bool,
    ) -> MeetingPendingSignal:
        signal = MeetingPendingSignal(
            meeting_id=meeting_id,
            holder_session_id=holder_session_id,
            sender_peer_id=sender_peer_id,
            receiver_peer_id=receiver_peer_id,
            signal_type=signal_type,
            payload=payload,
            is_offline=is_offline,
        )
        db.add(signal)
        await db.flush()
        return signal

    @staticmethod
    async def list_pending_signals_for_peer(
        db: AsyncSession,
        meeting_id: int,
        receiver_peer_id: str,
        exclude_user_id: int,
    ) -> List[MeetingPendingSignal]:
        """Signals addressed to a peer, held by sessions of other users."""
        result = await db.execute(
            select(MeetingPendingSignal)
            .join(MeetingSession, MeetingSession.id == MeetingPendingSignal.holder_session_id)
            .where(
                MeetingPendingSignal.meeting_id == meeting_id,
                MeetingPendingSignal.receiver_peer_id == receiver_peer_id,
                MeetingSession.user_id != exclude_user_id,
            )
            .order_by(MeetingPendingSignal.created_at, MeetingPendingSignal.id)
        )
        return list(result.scalars().all())
