"""
Access Grant Service - Business logic for incident report access grants.

A grant gives a non-administrative user a capability level (full,
read_only, incidents_only) on one incident report or, when no report is
given, on all of them. Grants may carry an expiry; expiry is evaluated
whenever a grant is read, so an expired grant can still be is_active.

Invariant: at most one valid grant per (user, scope). Grant writes lock
the grantee's user row, and a partial unique index rejects any concurrent
duplicate that slips past the checks.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.decorators import (
    critical_database_operation,
    log_database_operation,
    safe_database_query,
    transactional_database_operation,
)
from core.dependencies import is_administrator
from core.metrics import track_access_check, track_access_grant_operation
from db import AccessCapability, AccessType, IncidentReportAccess, User, utc_now
from repositories.incident_report_access_repository import IncidentReportAccessRepository
from repositories.user_repository import UserRepository
from services.exceptions import AccessGrantValidationError, NotFoundError

logger = logging.getLogger(__name__)

GRANT_NOT_FOUND = "Incident report access not found"

SCOPE_CONFLICT_SPECIFIC = "This user already has active access for this specific incident report."
SCOPE_CONFLICT_GLOBAL = "This user already has active global incident report access."
GLOBAL_ACCESS_EXISTS = "This user already has global access. Report-specific access is not needed."


def _scope_conflict_message(incident_report_id: Optional[int]) -> str:
    if incident_report_id is not None:
        return SCOPE_CONFLICT_SPECIFIC
    return SCOPE_CONFLICT_GLOBAL


class AccessGrantService:
    """Service for granting, revoking and checking incident report access."""

    @staticmethod
    @log_database_operation("grant_access", level="info")
    @transactional_database_operation("grant_access")
    @critical_database_operation
    async def grant_access(
        db: AsyncSession,
        user_id: int,
        access_type: str,
        granted_by: int,
        incident_report_id: Optional[int] = None,
        notes: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> IncidentReportAccess:
        """
        Grant a user access to one incident report or to all of them.

        Args:
            db: Database session
            user_id: Grantee
            access_type: full, read_only or incidents_only
            granted_by: Administrator issuing the grant
            incident_report_id: Report scope, None for global access
            notes: Free text shown to administrators
            expires_at: Naive UTC expiry, None for no expiry

        Returns:
            IncidentReportAccess: The new active grant

        Raises:
            AccessGrantValidationError: Unknown user/report, past expiry,
                or an existing valid grant conflicts with the requested scope
        """
        now = utc_now()
        access_type = AccessType(access_type).value

        # Serializes concurrent grants for the same user
        user = await UserRepository.lock_for_update(db, user_id)
        if not user:
            track_access_grant_operation("grant", success=False)
            raise AccessGrantValidationError("user_id", "The selected user does not exist.")

        if incident_report_id is not None and not await IncidentReportAccessRepository.report_exists(
            db, incident_report_id
        ):
            track_access_grant_operation("grant", success=False)
            raise AccessGrantValidationError(
                "incident_report_id", "The selected incident report does not exist."
            )

        if expires_at is not None and expires_at <= now:
            track_access_grant_operation("grant", success=False)
            raise AccessGrantValidationError("expires_at", "The expiry date must be in the future.")

        existing = await IncidentReportAccessRepository.find_valid_for_scope(
            db, user_id, incident_report_id, now
        )
        if existing:
            track_access_grant_operation("grant", success=False)
            raise AccessGrantValidationError("user_id", _scope_conflict_message(incident_report_id))

        if incident_report_id is not None:
            global_grant = await IncidentReportAccessRepository.find_valid_for_scope(
                db, user_id, None, now
            )
            if global_grant:
                track_access_grant_operation("grant", success=False)
                raise AccessGrantValidationError("incident_report_id", GLOBAL_ACCESS_EXISTS)

        # Expired rows of this scope may still be active
        superseded = await IncidentReportAccessRepository.deactivate_scope(
            db, user_id, incident_report_id
        )

        try:
            grant = await IncidentReportAccessRepository.create_grant(
                db,
                user_id=user_id,
                incident_report_id=incident_report_id,
                access_type=access_type,
                granted_by=granted_by,
                notes=notes,
                expires_at=expires_at,
            )
        except IntegrityError:
            track_access_grant_operation("grant", success=False)
            raise AccessGrantValidationError("user_id", _scope_conflict_message(incident_report_id))

        track_access_grant_operation("grant", success=True)

        logger.info(
            "AUDIT: access_granted",
            extra={
                "event": "access_granted",
                "grant_id": grant.id,
                "user_id": user_id,
                "incident_report_id": incident_report_id,
                "access_type": access_type,
                "granted_by": granted_by,
                "expires_at": expires_at.isoformat() if expires_at else None,
                "superseded_rows": superseded,
            },
        )

        return grant

    @staticmethod
    @log_database_operation("revoke_user_access", level="info")
    @transactional_database_operation("revoke_user_access")
    @critical_database_operation
    async def revoke_user_access(
        db: AsyncSession, user_id: int, revoked_by: Optional[int] = None
    ) -> Tuple[User, int]:
        """
        Deactivate every active grant of a user, whatever its scope.

        Returns:
            Tuple of (user, number of rows deactivated)

        Raises:
            NotFoundError: If the user does not exist
        """
        user = await UserRepository.lock_for_update(db, user_id)
        if not user:
            raise NotFoundError("User not found")

        revoked = await IncidentReportAccessRepository.deactivate_all_for_user(db, user_id)
        track_access_grant_operation("revoke", success=True)

        logger.info(
            "AUDIT: access_revoked",
            extra={
                "event": "access_revoked",
                "user_id": user_id,
                "revoked_by": revoked_by,
                "revoked_rows": revoked,
            },
        )

        return user, revoked

    @staticmethod
    @log_database_operation("extend_access")
    @transactional_database_operation("extend_access")
    @critical_database_operation
    async def extend_access(
        db: AsyncSession, grant_id: int, extension_days: int
    ) -> IncidentReportAccess:
        """
        Push a grant's expiry back by a number of days.

        The days are added to the stored expiry even when it already lies
        in the past; a grant without expiry gets now + days.
        """
        max_days = settings.access.max_extension_days
        if not 1 <= extension_days <= max_days:
            raise AccessGrantValidationError(
                "extension_days", f"The extension days must be between 1 and {max_days}."
            )

        grant = await IncidentReportAccessRepository.get_grant(db, grant_id)
        if not grant:
            raise NotFoundError(GRANT_NOT_FOUND)

        base = grant.expires_at or utc_now()
        grant.expires_at = base + timedelta(days=extension_days)
        grant.updated_at = utc_now()
        await db.flush()

        track_access_grant_operation("extend", success=True)
        logger.info(
            f"Extended access grant {grant_id} by {extension_days} days "
            f"(expires {grant.expires_at.isoformat()})"
        )
        return grant

    @staticmethod
    @log_database_operation("destroy_access")
    @transactional_database_operation("destroy_access")
    @critical_database_operation
    async def destroy_access(db: AsyncSession, grant_id: int) -> IncidentReportAccess:
        """Deactivate a single grant. Rows are never deleted."""
        grant = await IncidentReportAccessRepository.get_grant(db, grant_id)
        if not grant:
            raise NotFoundError(GRANT_NOT_FOUND)

        grant.is_active = False
        grant.updated_at = utc_now()
        await db.flush()

        track_access_grant_operation("destroy", success=True)
        logger.info(
            "AUDIT: access_revoked",
            extra={
                "event": "access_revoked",
                "grant_id": grant_id,
                "user_id": grant.user_id,
                "incident_report_id": grant.incident_report_id,
            },
        )
        return grant

    @staticmethod
    @log_database_operation("update_access")
    @transactional_database_operation("update_access")
    @critical_database_operation
    async def update_access(
        db: AsyncSession, grant_id: int, changes: Dict[str, Any]
    ) -> IncidentReportAccess:
        """
        Edit a grant in place.

        Args:
            db: Database session
            grant_id: Grant to edit
            changes: Submitted fields only (access_type, incident_report_id,
                notes, expires_at, is_active)

        Raises:
            NotFoundError: If the grant does not exist
            AccessGrantValidationError: Unknown report, reactivation of an
                inactive grant, or a scope move onto an existing valid grant
        """
        grant = await IncidentReportAccessRepository.get_grant(db, grant_id)
        if not grant:
            raise NotFoundError(GRANT_NOT_FOUND)

        if changes.get("is_active") and not grant.is_active:
            raise AccessGrantValidationError(
                "is_active", "An inactive access grant cannot be reactivated."
            )

        if "access_type" in changes:
            changes["access_type"] = AccessType(changes["access_type"]).value

        new_scope = changes.get("incident_report_id", grant.incident_report_id)
        if new_scope is not None and "incident_report_id" in changes:
            if not await IncidentReportAccessRepository.report_exists(db, new_scope):
                raise AccessGrantValidationError(
                    "incident_report_id", "The selected incident report does not exist."
                )

        stays_active = changes.get("is_active", grant.is_active)
        if stays_active and new_scope != grant.incident_report_id:
            await UserRepository.lock_for_update(db, grant.user_id)
            conflicting = await IncidentReportAccessRepository.find_valid_for_scope(
                db, grant.user_id, new_scope
            )
            if conflicting:
                raise AccessGrantValidationError("incident_report_id", _scope_conflict_message(new_scope))
            await IncidentReportAccessRepository.deactivate_scope(db, grant.user_id, new_scope)

        for field, value in changes.items():
            setattr(grant, field, value)
        grant.updated_at = utc_now()

        try:
            await db.flush()
        except IntegrityError:
            raise AccessGrantValidationError("incident_report_id", _scope_conflict_message(new_scope))

        track_access_grant_operation("update", success=True)
        logger.info(f"Updated access grant {grant_id}: {sorted(changes)}")

        return await IncidentReportAccessRepository.get_grant(db, grant_id)

    @staticmethod
    @critical_database_operation
    async def get_access(db: AsyncSession, grant_id: int) -> IncidentReportAccess:
        grant = await IncidentReportAccessRepository.get_grant(db, grant_id)
        if not grant:
            raise NotFoundError(GRANT_NOT_FOUND)
        return grant

    @staticmethod
    @critical_database_operation
    async def list_access(
        db: AsyncSession,
        page: int = 1,
        per_page: Optional[int] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
        access_type: Optional[str] = None,
        report_type: Optional[str] = None,
        incident_report_id: Optional[int] = None,
    ) -> Tuple[List[IncidentReportAccess], int]:
        """Filtered page of grants, newest first."""
        return await IncidentReportAccessRepository.list_grants(
            db,
            page=page,
            per_page=per_page or settings.access.default_page_size,
            search=search,
            status=status,
            access_type=access_type,
            report_type=report_type,
            incident_report_id=incident_report_id,
        )

    @staticmethod
    @safe_database_query("get_available_users", default_return=[])
    async def get_available_users(
        db: AsyncSession, incident_report_id: Optional[int] = None
    ) -> List[User]:
        """Users an administrator may still grant access to."""
        return await UserRepository.list_available_for_grant(db, incident_report_id)

    @staticmethod
    async def find_effective_grant(
        db: AsyncSession,
        user_id: int,
        capability: str,
        incident_report_id: Optional[int] = None,
    ) -> Optional[IncidentReportAccess]:
        """
        Grant that satisfies a capability for a user.

        A report-specific grant is consulted first; when it is missing or
        too weak, the user's global grant is tried.
        """
        now = utc_now()
        if incident_report_id is not None:
            report_grant = await IncidentReportAccessRepository.find_valid_for_scope(
                db, user_id, incident_report_id, now
            )
            if report_grant and report_grant.has_access_type(capability, now):
                return report_grant

        global_grant = await IncidentReportAccessRepository.find_valid_for_scope(
            db, user_id, None, now
        )
        if global_grant and global_grant.has_access_type(capability, now):
            return global_grant
        return None

    @staticmethod
    async def can_access(
        db: AsyncSession,
        user: User,
        capability: str = AccessCapability.READ_ONLY.value,
        incident_report_id: Optional[int] = None,
    ) -> bool:
        """Whether the user may exercise a capability on a report (or globally)."""
        capability = str(getattr(capability, "value", capability))

        if is_administrator(user):
            allowed = True
        else:
            grant = await AccessGrantService.find_effective_grant(
                db, user.id, capability, incident_report_id
            )
            allowed = grant is not None

        track_access_check(capability, allowed)
        return allowed
