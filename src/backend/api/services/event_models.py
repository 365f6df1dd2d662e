"""
Event data models for Redis Streams event transport.

Defines the StreamEvent dataclass published to Redis Streams.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.schema_base import serialize_datetime


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return serialize_datetime(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass(frozen=True)
class EventMetadata:
    """Optional metadata for event tracing and debugging.

    Attributes:
        trace_id: Correlation ID of the HTTP request that produced the event
        client_event: Event name the relay emits to browsers
    """

    trace_id: Optional[str] = None
    client_event: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            k: v for k, v in {
                "trace_id": self.trace_id,
                "client_event": self.client_event,
            }.items() if v is not None
        }


@dataclass
class StreamEvent:
    """Base event structure for all real-time events published to Redis Streams.

    Attributes:
        event_id: Unique identifier (UUID v4) for idempotency
        event_type: Type discriminator for event handling (see EventType enum)
        timestamp: Event creation time (ISO8601 format)
        room_id: Target room for broadcast (meeting.{id} or peer.{peer_id})
        payload: Event-specific data (structure depends on event_type)
        metadata: Optional tracing/debugging info
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    room_id: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)
    metadata: Optional[EventMetadata] = None

    def to_stream_dict(self) -> Dict[str, str]:
        """Convert to Redis Streams XADD format.

        Redis Streams requires all field values to be strings.
        The payload is serialized as JSON string.

        Returns:
            Dictionary with string values for XADD
        """
        result = {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "room_id": self.room_id,
            "payload": json.dumps(self.payload, default=_json_default),
        }

        if self.metadata:
            metadata_dict = self.metadata.to_dict()
            if metadata_dict:
                result["metadata"] = json.dumps(metadata_dict)

        return result
