"""
User Repository - read access to users and their administrative roles.
"""
from typing import List, Optional

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db import IncidentReportAccess, Role, User, UserRole, utc_now
from db.setup import ADMINISTRATIVE_ROLES
from repositories.base_repository import BaseRepository
from repositories.incident_report_access_repository import valid_grant_clause


class UserRepository(BaseRepository[User]):
    """Repository for users as grantees and meeting participants."""

    model = User

    @staticmethod
    async def get_with_roles(db: AsyncSession, user_id: int) -> Optional[User]:
        """Get a user with roles eagerly loaded, overwriting any cached instance."""
        result = await db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.user_roles).selectinload(UserRole.role))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def lock_for_update(db: AsyncSession, user_id: int) -> Optional[User]:
        """Lock the user row for the rest of the transaction.

        Serializes concurrent grant writes for the same grantee.
        SQLite ignores FOR UPDATE; its writers are already serialized.
        """
        result = await db.execute(
            select(User).where(User.id == user_id).with_for_update()
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _administrator_clause():
        has_admin_role = exists(
            select(UserRole.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                UserRole.user_id == User.id,
                UserRole.is_active.is_(True),
                UserRole.is_deleted.is_(False),
                Role.is_active.is_(True),
                func.lower(Role.name).in_(ADMINISTRATIVE_ROLES),
            )
        )
        return or_(User.is_super_admin.is_(True), has_admin_role)

    @staticmethod
    async def list_available_for_grant(
        db: AsyncSession, incident_report_id: Optional[int] = None
    ) -> List[User]:
        """Active non-administrators that do not already hold a valid grant.

        With a report id only grants on that report count; without one any
        valid grant excludes the user.
        """
        grant_conditions = [
            IncidentReportAccess.user_id == User.id,
            valid_grant_clause(utc_now()),
        ]
        if incident_report_id is not None:
            grant_conditions.append(
                IncidentReportAccess.incident_report_id == incident_report_id
            )

        has_grant = exists(select(IncidentReportAccess.id).where(and_(*grant_conditions)))

        result = await db.execute(
            select(User)
            .where(
                User.is_active.is_(True),
                ~UserRepository._administrator_clause(),
                ~has_grant,
            )
            .order_by(func.coalesce(User.full_name, User.username))
        )
        return list(result.scalars().all())
