"""
Database configuration.
Implements connection pooling, async sessions and dialect helpers.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import PendingRollbackError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlmodel import SQLModel

from .config import settings

# Create async engine with pool settings
engine = create_async_engine(
    str(settings.database.url),
    echo=bool(settings.database.echo),
    future=True,
    pool_pre_ping=False,
    pool_size=settings.database.pool_size,
    max_overflow=settings.database.max_overflow,
    pool_timeout=settings.database.pool_timeout,
    pool_recycle=settings.database.pool_recycle,
    poolclass=AsyncAdaptedQueuePool,
    connect_args={
        "server_settings": {
            "application_name": settings.api.app_name,
        },
        "command_timeout": 60,
        "timeout": 30,
    },
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Prevent additional queries after commit
    autoflush=False,  # Manual flush for better control
    autocommit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.
    Implements proper session lifecycle management.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Only commit if session is in a valid state
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    # Transaction already invalid - rollback instead
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_cleanup_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a new isolated session for background jobs.

    Example:
        async with get_cleanup_session() as db:
            await SignalingService.cleanup_stale_sessions(db, timeout_minutes=5)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def dialect_insert(db: AsyncSession, table):
    """
    Return an INSERT construct supporting ON CONFLICT for the session's dialect.

    PostgreSQL in production, SQLite for local development and tests.
    Both expose on_conflict_do_update / on_conflict_do_nothing.
    """
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


async def init_db() -> None:
    """
    Initialize database tables.
    Should be called on application startup. Alembic remains the source of
    truth for production schemas; create_all only fills in missing tables.
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """
    Close database connections.
    Should be called on application shutdown.
    """
    await engine.dispose()
