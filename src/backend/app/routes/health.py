"""
Health check endpoint handler.
"""

from fastapi import APIRouter
from sqlalchemy import text

from api.services.event_publisher import redis_streams_publisher
from core.config import settings
from core.database import AsyncSessionLocal

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.
    Checks database connectivity and the Redis Streams transport.

    A broken event transport only degrades the service: signals fall back
    to pending storage and chat is still persisted.
    """
    health_status = {
        "status": "healthy",
        "services": {}
    }

    # Check database health
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "healthy"}
    except Exception as e:
        health_status["services"]["database"] = {
            "status": "unhealthy",
            "error": str(e),
        }
        health_status["status"] = "unhealthy"

    # Check event transport health
    if settings.broadcast.enabled:
        redis_healthy = await redis_streams_publisher.ping()
        health_status["services"]["redis"] = {
            "status": "healthy" if redis_healthy else "unhealthy",
        }
        if not redis_healthy and health_status["status"] == "healthy":
            health_status["status"] = "degraded"
    else:
        health_status["services"]["redis"] = {"status": "disabled"}

    return health_status
