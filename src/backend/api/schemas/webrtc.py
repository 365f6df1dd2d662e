"""
WebRTC signaling schemas for meeting sessions.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from api.schemas.user import UserSummary
from core.schema_base import HTTPSchemaModel, to_naive_utc
from db import SignalType


class SessionInitRequest(HTTPSchemaModel):
    peer_id: str = Field(..., min_length=1, max_length=100)


class ActivePeer(HTTPSchemaModel):
    """Another participant's open session in the same meeting."""

    id: int
    user_id: int
    peer_id: str
    user: Optional[UserSummary] = None


class SessionInitResponse(HTTPSchemaModel):
    session_id: int
    peer_id: str
    active_peers: List[ActivePeer]
    is_offline_enabled: bool


class IceCandidatesRequest(HTTPSchemaModel):
    candidates: List[Dict[str, Any]]


class SignalRequest(HTTPSchemaModel):
    """Offer, answer or ICE candidate addressed to another peer."""

    sender_peer_id: str = Field(..., min_length=1, max_length=100)
    receiver_peer_id: str = Field(..., min_length=1, max_length=100)
    meeting_id: int
    type: SignalType
    payload: Any = Field(...)
    is_offline: bool = False

    @field_validator("payload")
    @classmethod
    def require_payload(cls, value: Any) -> Any:
        if value is None or value == "" or value == {} or value == []:
            raise ValueError("payload is required")
        return value


class SignalResponse(HTTPSchemaModel):
    success: bool
    stored_offline: Optional[bool] = None


class SuccessResponse(HTTPSchemaModel):
    success: bool = True


class HeartbeatResponse(HTTPSchemaModel):
    success: bool = True
    last_heartbeat: datetime


class OfflineMessage(HTTPSchemaModel):
    """Chat message written while disconnected. Entries without content are ignored."""

    content: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class OfflineSyncRequest(HTTPSchemaModel):
    offline_data: Dict[str, Any]
    messages: List[OfflineMessage] = Field(default_factory=list)


class PendingSignal(HTTPSchemaModel):
    meeting_id: int
    sender_peer_id: str
    receiver_peer_id: str
    type: str
    payload: Any = None
    is_offline: bool = False
    timestamp: Optional[datetime] = None


class OfflineSyncResponse(HTTPSchemaModel):
    success: bool
    replayed_messages: int
    pending_signals: List[PendingSignal]
