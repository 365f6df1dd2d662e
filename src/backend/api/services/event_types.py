"""
Event type definitions for Redis Streams event transport.

Defines the EventType enum which classifies all real-time events
that can be published to Redis Streams for the websocket relay.
"""

from enum import Enum


class EventType(str, Enum):
    """Event type discriminator for Redis Streams events.

    Each event type maps to a specific payload schema and determines
    which stream carries it and the client-side event name the relay
    emits on the room channel.
    """

    # Meeting presence and chat (events:meeting stream, room meeting.{id})
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    MEETING_MESSAGE = "meeting_message"

    # Peer-addressed negotiation (events:signal stream, room peer.{peer_id})
    WEBRTC_SIGNAL = "webrtc_signal"

    @classmethod
    def get_stream_name(cls, event_type: str) -> str:
        """Get the Redis Stream name for an event type.

        Args:
            event_type: Event type string

        Returns:
            Stream suffix (e.g., "meeting"), prefixed by the publisher
        """
        if event_type == cls.WEBRTC_SIGNAL:
            return "signal"
        return "meeting"

    @classmethod
    def get_client_event_name(cls, event_type: str) -> str:
        """Name the relay emits to browsers for this event type."""
        return {
            cls.USER_JOINED: "user.joined",
            cls.USER_LEFT: "user.left",
            cls.MEETING_MESSAGE: "message.new",
            cls.WEBRTC_SIGNAL: "signal",
        }.get(event_type, str(event_type))

    @classmethod
    def all_values(cls) -> list[str]:
        """Get all event type values as a list."""
        return [e.value for e in cls]


def meeting_room(meeting_id: int) -> str:
    """Room that every participant of a meeting subscribes to."""
    return f"meeting.{meeting_id}"


def peer_room(peer_id: str) -> str:
    """Room that only the holder of a peer id subscribes to."""
    return f"peer.{peer_id}"
