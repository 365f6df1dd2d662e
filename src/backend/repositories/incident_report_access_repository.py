"""
Incident Report Access Repository - Data access layer for access grants.

Validity (active and unexpired) is always evaluated against the clock at
query time; no job flips expired rows.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db import (
    GrantScope,
    GrantStatusFilter,
    IncidentReport,
    IncidentReportAccess,
    User,
    utc_now,
)
from repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)

GRANT_RELATIONSHIPS = [
    IncidentReportAccess.user,
    IncidentReportAccess.granter,
    IncidentReportAccess.incident_report,
]


def valid_grant_clause(now: datetime):
    """SQL form of IncidentReportAccess.is_valid()."""
    return and_(
        IncidentReportAccess.is_active.is_(True),
        or_(
            IncidentReportAccess.expires_at.is_(None),
            IncidentReportAccess.expires_at > now,
        ),
    )


def scope_clause(incident_report_id: Optional[int]):
    if incident_report_id is None:
        return IncidentReportAccess.incident_report_id.is_(None)
    return IncidentReportAccess.incident_report_id == incident_report_id


class IncidentReportAccessRepository(BaseRepository[IncidentReportAccess]):
    """Repository for incident report access grants."""

    model = IncidentReportAccess

    @staticmethod
    async def report_exists(db: AsyncSession, incident_report_id: int) -> bool:
        result = await db.execute(
            select(IncidentReport.id).where(IncidentReport.id == incident_report_id)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_grant(db: AsyncSession, grant_id: int) -> Optional[IncidentReportAccess]:
        """Get grant by ID with user, granter and report loaded."""
        return await IncidentReportAccessRepository.find_by_id(
            db, grant_id, eager_load=GRANT_RELATIONSHIPS, refresh=True
        )

    @staticmethod
    async def create_grant(
        db: AsyncSession,
        user_id: int,
        incident_report_id: Optional[int],
        access_type: str,
        granted_by: Optional[int],
        notes: Optional[str],
        expires_at: Optional[datetime],
    ) -> IncidentReportAccess:
        """Insert a new active grant and load its relationships."""
        grant = IncidentReportAccess(
            user_id=user_id,
            incident_report_id=incident_report_id,
            access_type=access_type,
            granted_by=granted_by,
            notes=notes,
            expires_at=expires_at,
            is_active=True,
        )
        db.add(grant)
        await db.flush()
        await db.refresh(grant, ["user", "granter", "incident_report"])
        return grant

    @staticmethod
    async def find_valid_for_scope(
        db: AsyncSession,
        user_id: int,
        incident_report_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> Optional[IncidentReportAccess]:
        """Latest valid grant of a user for exactly this scope."""
        result = await db.execute(
            select(IncidentReportAccess)
            .where(
                IncidentReportAccess.user_id == user_id,
                scope_clause(incident_report_id),
                valid_grant_clause(now or utc_now()),
            )
            .order_by(desc(IncidentReportAccess.created_at), desc(IncidentReportAccess.id))
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def deactivate_scope(
        db: AsyncSession, user_id: int, incident_report_id: Optional[int]
    ) -> int:
        """Deactivate every active row of (user, scope). Returns rows touched."""
        result = await db.execute(
            update(IncidentReportAccess)
            .where(
                IncidentReportAccess.user_id == user_id,
                scope_clause(incident_report_id),
                IncidentReportAccess.is_active.is_(True),
            )
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0

    @staticmethod
    async def deactivate_all_for_user(db: AsyncSession, user_id: int) -> int:
        """Deactivate every active row of a user regardless of scope."""
        result = await db.execute(
            update(IncidentReportAccess)
            .where(
                IncidentReportAccess.user_id == user_id,
                IncidentReportAccess.is_active.is_(True),
            )
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0

    @staticmethod
    async def list_grants(
        db: AsyncSession,
        page: int = 1,
        per_page: int = 15,
        search: Optional[str] = None,
        status: Optional[str] = None,
        access_type: Optional[str] = None,
        report_type: Optional[str] = None,
        incident_report_id: Optional[int] = None,
    ) -> Tuple[List[IncidentReportAccess], int]:
        """Filtered, newest-first page of grants."""
        now = utc_now()
        conditions = []

        if search:
            pattern = f"%{search}%"
            conditions.append(
                IncidentReportAccess.user_id.in_(
                    select(User.id).where(
                        or_(
                            User.full_name.ilike(pattern),
                            User.username.ilike(pattern),
                            User.email.ilike(pattern),
                        )
                    )
                )
            )

        if status == GrantStatusFilter.ACTIVE:
            conditions.append(valid_grant_clause(now))
        elif status == GrantStatusFilter.EXPIRED:
            conditions.append(
                and_(
                    IncidentReportAccess.is_active.is_(True),
                    IncidentReportAccess.expires_at.is_not(None),
                    IncidentReportAccess.expires_at < now,
                )
            )
        elif status == GrantStatusFilter.INACTIVE:
            conditions.append(IncidentReportAccess.is_active.is_(False))

        if access_type:
            conditions.append(IncidentReportAccess.access_type == access_type)

        if report_type == GrantScope.GLOBAL:
            conditions.append(IncidentReportAccess.incident_report_id.is_(None))
        elif report_type == GrantScope.SPECIFIC:
            conditions.append(IncidentReportAccess.incident_report_id.is_not(None))

        if incident_report_id is not None:
            conditions.append(IncidentReportAccess.incident_report_id == incident_report_id)

        return await IncidentReportAccessRepository.find_paginated(
            db,
            conditions=conditions,
            page=page,
            per_page=per_page,
            eager_load=GRANT_RELATIONSHIPS,
            order_by=[desc(IncidentReportAccess.created_at), desc(IncidentReportAccess.id)],
        )
