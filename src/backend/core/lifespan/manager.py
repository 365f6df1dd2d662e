"""
Application lifespan manager.

This module provides the lifespan context manager that handles
startup and shutdown events for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.config import settings
from core.database import get_session
from core.logging_config import LogConfig, stop_queue_listener
from . import tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Setup logging
    log_config = LogConfig(**settings.logging.log_config)
    await tasks.initialize_logging(settings, log_config)

    logger = logging.getLogger("main")

    # Log CORS configuration for debugging
    await tasks.log_cors_configuration(settings, logger)

    # Initialize database
    await tasks.initialize_database()

    # Setup default data (administrative roles)
    await tasks.setup_default_data(get_session)

    # Start background scheduler for periodic tasks
    await tasks.start_background_scheduler()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.api.app_name} API...")

    # Shutdown background scheduler
    await tasks.shutdown_scheduler_task()

    # Close Redis Streams connection
    await tasks.shutdown_event_publisher()

    # Close database connections
    await tasks.shutdown_database()

    # Stop logging queue listener last so shutdown messages are flushed
    stop_queue_listener()
