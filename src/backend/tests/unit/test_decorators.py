"""
Unit tests for the database operation decorators and the cleanup job.

Tests:
- Commit on success, rollback on failure
- Business rejections propagate unchanged
- Safe queries swallow database errors into a default
- The scheduled sweep reports success and failure
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.decorators import (
    critical_database_operation,
    safe_database_query,
    transactional_database_operation,
)
from services.exceptions import NotFoundError


def _mock_session():
    return MagicMock(spec=AsyncSession)


class TestTransactionalOperation:

    @pytest.mark.asyncio
    async def test_commits_on_success(self):
        db = _mock_session()

        @transactional_database_operation("store")
        async def store(session, value):
            return value * 2

        assert await store(db, 21) == 42
        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_business_rejection(self):
        db = _mock_session()

        @transactional_database_operation("store")
        async def store(session):
            raise NotFoundError("Meeting not found")

        with pytest.raises(NotFoundError):
            await store(db)

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_session_found_in_keyword_arguments(self):
        db = _mock_session()

        @transactional_database_operation("store")
        async def store(*, session):
            return True

        await store(session=db)

        db.commit.assert_awaited_once()


class TestCriticalOperation:

    @pytest.mark.asyncio
    async def test_database_errors_reraised(self):
        @critical_database_operation
        async def query(session):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        with pytest.raises(OperationalError):
            await query(_mock_session())

    def test_sync_function_refused(self):
        with pytest.raises(TypeError):
            @critical_database_operation
            def query(session):
                return None


class TestSafeQuery:

    @pytest.mark.asyncio
    async def test_database_error_returns_default(self):
        @safe_database_query("list_users", default_return=[])
        async def list_users(session):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        assert await list_users(_mock_session()) == []

    @pytest.mark.asyncio
    async def test_business_rejection_still_raised(self):
        @safe_database_query("list_users", default_return=[])
        async def list_users(session):
            raise PermissionError("nope")

        with pytest.raises(PermissionError):
            await list_users(_mock_session())


class TestCleanupJob:

    @pytest.mark.asyncio
    async def test_job_runs_sweep_and_records_success(self, db_session):
        from core import scheduler

        @asynccontextmanager
        async def cleanup_session():
            yield db_session

        with patch.object(scheduler, "get_cleanup_session", cleanup_session), \
                patch.object(scheduler.SignalingService, "cleanup_stale_sessions", AsyncMock(return_value=3)) as sweep, \
                patch.object(scheduler, "track_background_task") as track:
            await scheduler.cleanup_stale_meeting_sessions_job()

        sweep.assert_awaited_once()
        assert sweep.await_args.args[0] is db_session
        assert track.call_args.args[0] == scheduler.STALE_SESSION_JOB_ID
        assert track.call_args.args[2] is True

    @pytest.mark.asyncio
    async def test_job_failure_is_logged_not_raised(self, db_session):
        from core import scheduler

        @asynccontextmanager
        async def cleanup_session():
            yield db_session

        failing = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("db down")))
        with patch.object(scheduler, "get_cleanup_session", cleanup_session), \
                patch.object(scheduler.SignalingService, "cleanup_stale_sessions", failing), \
                patch.object(scheduler, "track_background_task") as track:
            await scheduler.cleanup_stale_meeting_sessions_job()

        assert track.call_args.args[2] is False
