"""
Background task scheduler for periodic jobs.
Uses APScheduler to end meeting sessions that stopped sending heartbeats.
"""

import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from core.database import get_cleanup_session
from core.metrics import track_background_task
from services.signaling_service import SignalingService

logger = logging.getLogger(__name__)

STALE_SESSION_JOB_ID = "meeting_session_cleanup"

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def cleanup_stale_meeting_sessions_job():
    """
    Background job to end meeting sessions without a recent heartbeat.
    Runs every MEETING_CLEANUP_INTERVAL_SECONDS via APScheduler.

    Clients are expected to heartbeat well within
    MEETING_SESSION_TIMEOUT_MINUTES. Ended sessions are announced to
    their meeting room as user_left.
    """
    logger.debug("Running stale meeting session cleanup...")
    start = time.perf_counter()
    success = True

    try:
        async with get_cleanup_session() as db:
            count = await SignalingService.cleanup_stale_sessions(
                db, timeout_minutes=settings.meeting.session_timeout_minutes
            )

        if count > 0:
            logger.info(f"Stale meeting session cleanup completed: {count} sessions ended")
        else:
            logger.debug("Stale meeting session cleanup: no stale sessions found")

    except Exception as e:
        success = False
        logger.error(
            f"Scheduled stale meeting session cleanup job failed: {str(e)}", exc_info=True
        )
    finally:
        track_background_task(
            STALE_SESSION_JOB_ID, (time.perf_counter() - start) * 1000, success
        )


def start_scheduler():
    """Start the background scheduler with all jobs."""
    logger.info("Starting APScheduler for background tasks...")

    interval = settings.meeting.cleanup_interval_seconds
    scheduler.add_job(
        cleanup_stale_meeting_sessions_job,
        trigger=IntervalTrigger(seconds=interval),
        id=STALE_SESSION_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        name="Stale Meeting Session Cleanup",
    )

    if not scheduler.running:
        scheduler.start()
    logger.info(f"APScheduler started with jobs: meeting session cleanup ({interval}s)")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("APScheduler shut down successfully")
