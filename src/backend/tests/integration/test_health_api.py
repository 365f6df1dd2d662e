"""
Integration tests for the health endpoint.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from api.services.event_publisher import redis_streams_publisher


@pytest.mark.asyncio
async def test_healthy_when_database_and_redis_reachable(client, test_engine):
    with patch("app.routes.health.AsyncSessionLocal", async_sessionmaker(test_engine)), \
            patch.object(redis_streams_publisher, "ping", AsyncMock(return_value=True)):
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "services": {"database": {"status": "healthy"}, "redis": {"status": "healthy"}},
    }


@pytest.mark.asyncio
async def test_degraded_without_redis(client, test_engine):
    with patch("app.routes.health.AsyncSessionLocal", async_sessionmaker(test_engine)), \
            patch.object(redis_streams_publisher, "ping", AsyncMock(return_value=False)):
        response = await client.get("/health")

    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["redis"] == {"status": "unhealthy"}
