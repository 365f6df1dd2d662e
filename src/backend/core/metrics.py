"""
Prometheus metrics for access grants, meeting signaling and event transport.

This module defines:
- Event transport (publish latency, outcomes, fallbacks to queued delivery)
- Access grant outcomes (granted, rejected, revoked, extended)
- Signaling (signals relayed live vs queued, sessions started/ended/cleaned)
- Background tasks (sweep duration and status)

Usage:
    from core.metrics import track_event_publish, track_signal_relayed

    track_event_publish("redis_streams", "webrtc_signal", 0.004, True)
    track_signal_relayed("offer", delivered_live=True)
"""

from prometheus_client import Counter, Gauge, Histogram

# ==============================================================================
# Event Transport Metrics (Redis Streams)
# ==============================================================================

event_publish_duration_seconds = Histogram(
    'event_publish_duration_seconds',
    'Time to publish event to transport layer',
    ['transport', 'event_type'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

events_published_total = Counter(
    'events_published_total',
    'Total events published to transport layer',
    ['transport', 'event_type', 'status']  # status: success/failure
)

event_transport_fallback_total = Counter(
    'event_transport_fallback_total',
    'Number of times queued delivery was used because the broadcast failed',
    ['reason']  # reason: broadcast_unavailable, receiver_offline
)

# ==============================================================================
# Access Grant Metrics
# ==============================================================================

access_grant_operations_total = Counter(
    'access_grant_operations_total',
    'Incident report access grant operations',
    ['operation', 'status']  # operation: grant/revoke/extend/destroy/update
)

access_checks_total = Counter(
    'access_checks_total',
    'Incident report capability checks',
    ['capability', 'result']  # result: allowed/denied
)

# ==============================================================================
# Signaling Metrics
# ==============================================================================

signals_relayed_total = Counter(
    'webrtc_signals_total',
    'WebRTC signals handled by the relay',
    ['signal_type', 'delivery']  # delivery: live/queued
)

meeting_sessions_total = Counter(
    'meeting_sessions_total',
    'Meeting session lifecycle transitions',
    ['transition']  # transition: started/ended/stale
)

meeting_messages_total = Counter(
    'meeting_messages_total',
    'Meeting chat messages stored',
    ['origin']  # origin: live/offline
)

# ==============================================================================
# Background Task Metrics
# ==============================================================================

background_tasks_completed_total = Counter(
    'background_tasks_completed_total',
    'Total background tasks completed',
    ['task_name', 'status']  # status: success/failure
)

background_task_duration_ms = Histogram(
    'background_task_duration_ms',
    'Background task execution duration',
    ['task_name'],
    buckets=(10, 50, 100, 500, 1000, 5000, 10000, 30000, 60000, float('inf'))
)

scheduler_jobs_total = Gauge(
    'scheduler_jobs_total',
    'Total number of scheduled jobs'
)


# ==============================================================================
# Helper Functions
# ==============================================================================

def track_event_publish(
    transport: str,
    event_type: str,
    duration_seconds: float,
    success: bool
):
    """Track event publish to transport layer.

    Args:
        transport: Transport name (redis_streams)
        event_type: Event type (user_joined, webrtc_signal, etc.)
        duration_seconds: Time taken to publish
        success: Whether publish succeeded
    """
    event_publish_duration_seconds.labels(
        transport=transport,
        event_type=event_type
    ).observe(duration_seconds)

    events_published_total.labels(
        transport=transport,
        event_type=event_type,
        status='success' if success else 'failure'
    ).inc()


def track_transport_fallback(reason: str):
    """Track a signal that was stored for later pickup instead of broadcast."""
    event_transport_fallback_total.labels(reason=reason).inc()


def track_access_grant_operation(operation: str, success: bool):
    access_grant_operations_total.labels(
        operation=operation,
        status='success' if success else 'rejected'
    ).inc()


def track_access_check(capability: str, allowed: bool):
    access_checks_total.labels(
        capability=capability,
        result='allowed' if allowed else 'denied'
    ).inc()


def track_signal_relayed(signal_type: str, delivered_live: bool):
    signals_relayed_total.labels(
        signal_type=signal_type,
        delivery='live' if delivered_live else 'queued'
    ).inc()


def track_session_transition(transition: str, count: int = 1):
    meeting_sessions_total.labels(transition=transition).inc(count)


def track_meeting_message(is_offline: bool):
    meeting_messages_total.labels(origin='offline' if is_offline else 'live').inc()


def track_background_task(task_name: str, duration_ms: float, success: bool):
    """Track a background task run.

    Args:
        task_name: Scheduler job id
        duration_ms: Execution time in milliseconds
        success: Whether the run completed without raising
    """
    background_task_duration_ms.labels(task_name=task_name).observe(duration_ms)
    background_tasks_completed_total.labels(
        task_name=task_name,
        status='success' if success else 'failure'
    ).inc()
