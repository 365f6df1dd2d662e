"""
Lifespan startup and shutdown task functions.

This module contains individual task functions for application startup
and shutdown sequences. Each function handles a specific responsibility.
"""

import logging


async def initialize_logging(settings, log_config):
    """Setup logging configuration."""
    from core.logging_config import setup_logging

    logger = logging.getLogger("main")
    setup_logging(log_config)

    logger.info(f"Starting {settings.api.app_name} API...")


async def log_cors_configuration(settings, logger):
    """Log CORS configuration for debugging."""
    logger.info(f"CORS Allowed Origins: {settings.cors.origins}")


async def initialize_database():
    """Initialize database tables."""
    from core.database import init_db

    logger = logging.getLogger("main")
    await init_db()
    logger.info("Database initialized")


async def setup_default_data(get_session):
    """Setup default database data (administrative roles)."""
    from db.setup import setup_database_default_data

    logger = logging.getLogger("main")
    logger.info("Setting up default database data...")
    async for db in get_session():
        try:
            setup_success = await setup_database_default_data(db)
            if setup_success:
                logger.info("Default data setup completed successfully")
            else:
                logger.error("Default data setup failed - check logs above")
        except Exception as e:
            logger.error(f"Error during default data setup: {e}")
        finally:
            break  # Only process first session


async def start_background_scheduler():
    """Start APScheduler for periodic maintenance jobs."""
    from core.scheduler import start_scheduler

    logger = logging.getLogger("main")
    try:
        start_scheduler()
        logger.info("Background scheduler started")
    except Exception as e:
        logger.warning(f"Scheduler initialization failed: {e}")


async def shutdown_scheduler_task():
    """Shutdown the background scheduler."""
    from core.scheduler import shutdown_scheduler

    logger = logging.getLogger("main")
    try:
        shutdown_scheduler()
        logger.info("Background scheduler shut down")
    except Exception as e:
        logger.warning(f"Scheduler shutdown error: {e}")


async def shutdown_event_publisher():
    """Close the Redis Streams publisher connection."""
    from api.services.event_publisher import redis_streams_publisher

    logger = logging.getLogger("main")
    try:
        await redis_streams_publisher.close()
        logger.info("Event publisher closed")
    except Exception as e:
        logger.warning(f"Event publisher shutdown error: {e}")


async def shutdown_database():
    """Close database connections."""
    from core.database import close_db

    logger = logging.getLogger("main")
    await close_db()
    logger.info("Database connections closed")
