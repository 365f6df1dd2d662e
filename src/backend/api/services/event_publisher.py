"""
Redis Streams publisher for real-time event transport.

Publishes events to Redis Streams for low-latency delivery by the
websocket relay. A False return means the broadcast transport is
unavailable and callers should fall back to queued delivery.
"""

import logging
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis_lib

from api.services.event_models import EventMetadata, StreamEvent
from api.services.event_types import EventType
from core.config import settings
from core.metrics import track_event_publish
from core.middleware.correlation import get_correlation_id

logger = logging.getLogger(__name__)


class RedisStreamsPublisher:
    """Publishes events to Redis Streams.

    Uses XADD with MAXLEN for bounded memory. Events are consumed by the
    websocket relay via XREADGROUP.
    """

    def __init__(self):
        self._redis: Optional[redis_lib.Redis] = None

    async def _get_redis(self) -> redis_lib.Redis:
        if self._redis is None:
            self._redis = redis_lib.Redis.from_url(
                settings.redis.url,
                **settings.redis.redis_config,
                decode_responses=False,
            )
        return self._redis

    async def publish(self, stream: str, event: StreamEvent) -> bool:
        """Publish event to Redis Stream via XADD.

        Args:
            stream: Stream name (e.g., "events:meeting")
            event: StreamEvent to publish

        Returns:
            True if successful, False otherwise
        """
        try:
            client = await self._get_redis()

            entry_id = await client.xadd(
                stream,
                event.to_stream_dict(),
                maxlen=settings.broadcast.stream_max_length,
                approximate=True,
            )

            logger.debug(
                f"RedisStreamsPublisher: Published {event.event_type} to {stream} "
                f"(entry_id: {entry_id})"
            )
            return True

        except (redis_lib.ConnectionError, redis_lib.TimeoutError) as e:
            logger.error(
                f"RedisStreamsPublisher: Redis connection failed while publishing "
                f"{event.event_type} to {stream} - {type(e).__name__}: {e}"
            )
            return False
        except Exception as e:
            logger.error(
                f"RedisStreamsPublisher: Failed to publish {event.event_type} to {stream} "
                f"- {type(e).__name__}: {e}",
                exc_info=True
            )
            return False

    async def ping(self) -> bool:
        """Check that the stream transport is reachable."""
        try:
            client = await self._get_redis()
            return bool(await client.ping())
        except (redis_lib.ConnectionError, redis_lib.TimeoutError) as e:
            logger.warning(f"RedisStreamsPublisher: ping failed - {type(e).__name__}: {e}")
            return False

    async def close(self):
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global publisher instance
redis_streams_publisher = RedisStreamsPublisher()


async def publish_event(event_type: str, room_id: str, payload: Dict[str, Any]) -> bool:
    """
    Publish event to Redis Streams.

    Args:
        event_type: Event type (e.g., "user_joined", "webrtc_signal")
        room_id: Target room ID
        payload: Event payload

    Returns:
        True if successful, False otherwise
    """
    if not settings.broadcast.enabled:
        logger.debug("Broadcasting is disabled, skipping event publish")
        return False

    event = StreamEvent(
        event_type=str(getattr(event_type, "value", event_type)),
        room_id=room_id,
        payload=payload,
        metadata=EventMetadata(
            trace_id=get_correlation_id() or None,
            client_event=EventType.get_client_event_name(event_type),
        ),
    )

    stream = _get_stream_name(event.event_type)

    start_time = time.time()
    success = await redis_streams_publisher.publish(stream, event)
    duration = time.time() - start_time

    track_event_publish(
        transport="redis_streams",
        event_type=event.event_type,
        duration_seconds=duration,
        success=success
    )

    return success


def _get_stream_name(event_type: str) -> str:
    """Get the Redis Stream key for an event type (e.g., "events:meeting")."""
    return f"{settings.broadcast.stream_prefix}:{EventType.get_stream_name(event_type)}"
