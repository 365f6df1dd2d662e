"""
Incident report access API endpoints.

Provides endpoints for:
- Listing, reading and editing access grants
- Granting global or report-specific access
- Extending, deactivating and revoking grants
- Listing users that can still receive a grant
- Checking a capability for the current user

Management endpoints require a super administrator. The capability
check is open to any authenticated user and only answers for themself.
"""

import logging
from math import ceil
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.incident_report_access import (
    AccessCheckResponse,
    AccessExtendRequest,
    IncidentReportAccessCreate,
    IncidentReportAccessListResponse,
    IncidentReportAccessRead,
    IncidentReportAccessUpdate,
    RevokeAccessResponse,
)
from api.schemas.user import UserSummary
from api.v1.errors import field_validation_http_error, not_found_http_error
from core.config import settings
from core.database import get_session
from core.dependencies import get_current_user, require_super_admin
from db import AccessCapability, AccessType, GrantScope, GrantStatusFilter, User
from services.access_grant_service import AccessGrantService
from services.exceptions import AccessGrantValidationError, NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=IncidentReportAccessListResponse)
async def list_access_grants(
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.access.default_page_size, ge=1, le=settings.access.max_page_size),
    search: Optional[str] = Query(None, max_length=255, description="User name, username or email"),
    status: Optional[GrantStatusFilter] = Query(None),
    access_type: Optional[AccessType] = Query(None),
    report_type: Optional[GrantScope] = Query(None),
    incident_report_id: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """
    List access grants, newest first.

    **Filters:**
    - search: substring of the grantee's full name, username or email
    - status: active (valid now), expired (active but past expiry), inactive
    - access_type: full, read_only, incidents_only
    - report_type: global or specific
    - incident_report_id: grants scoped to one report

    **Permission:** Super admin
    """
    grants, total = await AccessGrantService.list_access(
        db,
        page=page,
        per_page=per_page,
        search=search,
        status=status.value if status else None,
        access_type=access_type.value if access_type else None,
        report_type=report_type.value if report_type else None,
        incident_report_id=incident_report_id,
    )

    return IncidentReportAccessListResponse(
        data=[IncidentReportAccessRead.from_grant(grant) for grant in grants],
        total=total,
        page=page,
        per_page=per_page,
        last_page=max(1, ceil(total / per_page)),
    )


@router.post("", response_model=IncidentReportAccessRead, status_code=201)
async def grant_access(
    grant_data: IncidentReportAccessCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """
    Grant a user access to one incident report, or to all of them.

    **Rules:**
    - The user and (when given) the report must exist
    - expires_at must be in the future
    - Rejected when the user already holds a valid grant for the same scope
    - A report-specific grant is rejected when the user holds a valid global grant
    - Older rows for the same scope are deactivated

    **Raises:**
        HTTPException 422: Field-level validation failure
        HTTPException 403: Caller is not a super admin
    """
    try:
        grant = await AccessGrantService.grant_access(
            db,
            user_id=grant_data.user_id,
            access_type=grant_data.access_type.value,
            granted_by=current_user.id,
            incident_report_id=grant_data.incident_report_id,
            notes=grant_data.notes,
            expires_at=grant_data.expires_at,
        )
    except AccessGrantValidationError as e:
        raise field_validation_http_error(e)

    return IncidentReportAccessRead.from_grant(grant)


@router.get("/available-users", response_model=List[UserSummary])
async def get_available_users(
    incident_report_id: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """
    Users that can still receive a grant.

    Administrators are never listed. With incident_report_id, users that
    already hold a valid grant on that report are excluded; without it,
    users holding any valid grant are excluded.
    """
    users = await AccessGrantService.get_available_users(db, incident_report_id)
    return [UserSummary.model_validate(user) for user in users]


@router.get("/check", response_model=AccessCheckResponse)
async def check_access(
    capability: AccessCapability = Query(AccessCapability.READ_ONLY),
    incident_report_id: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Whether the current user may exercise a capability on a report (or on all reports)."""
    allowed = await AccessGrantService.can_access(
        db, current_user, capability.value, incident_report_id
    )

    grant = None
    if allowed:
        grant = await AccessGrantService.find_effective_grant(
            db, current_user.id, capability.value, incident_report_id
        )

    return AccessCheckResponse(
        allowed=allowed,
        capability=capability,
        incident_report_id=incident_report_id,
        grant_id=grant.id if grant else None,
        access_type=grant.access_type if grant else None,
        expires_at=grant.expires_at if grant else None,
    )


@router.get("/{grant_id}", response_model=IncidentReportAccessRead)
async def get_access_grant(
    grant_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """Get one grant with grantee, granter and report."""
    try:
        grant = await AccessGrantService.get_access(db, grant_id)
    except NotFoundError as e:
        raise not_found_http_error(e)

    return IncidentReportAccessRead.from_grant(grant)


@router.put("/{grant_id}", response_model=IncidentReportAccessRead)
async def update_access_grant(
    grant_id: int,
    update_data: IncidentReportAccessUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """
    Edit a grant.

    Only submitted fields change. An inactive grant cannot be made
    active again; issue a new grant instead.
    """
    changes = update_data.model_dump(exclude_unset=True)
    if "access_type" in changes:
        changes["access_type"] = update_data.access_type.value

    try:
        grant = await AccessGrantService.update_access(db, grant_id, changes)
    except NotFoundError as e:
        raise not_found_http_error(e)
    except AccessGrantValidationError as e:
        raise field_validation_http_error(e)

    return IncidentReportAccessRead.from_grant(grant)


@router.delete("/{grant_id}", response_model=IncidentReportAccessRead)
async def deactivate_access_grant(
    grant_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """Deactivate a grant. The row is kept for history."""
    try:
        grant = await AccessGrantService.destroy_access(db, grant_id)
    except NotFoundError as e:
        raise not_found_http_error(e)

    return IncidentReportAccessRead.from_grant(grant)


@router.post("/{grant_id}/extend", response_model=IncidentReportAccessRead)
async def extend_access_grant(
    grant_id: int,
    extend_data: AccessExtendRequest,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """
    Extend a grant by 1 to 365 days.

    Days are added to the current expiry, even one already in the past;
    a grant without expiry gets now + days.
    """
    try:
        grant = await AccessGrantService.extend_access(db, grant_id, extend_data.extension_days)
    except NotFoundError as e:
        raise not_found_http_error(e)
    except AccessGrantValidationError as e:
        raise field_validation_http_error(e)

    return IncidentReportAccessRead.from_grant(grant)


@router.post("/users/{user_id}/revoke", response_model=RevokeAccessResponse)
async def revoke_user_access(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_super_admin),
):
    """Deactivate every active grant of a user."""
    try:
        user, revoked = await AccessGrantService.revoke_user_access(
            db, user_id, revoked_by=current_user.id
        )
    except NotFoundError as e:
        raise not_found_http_error(e)

    return RevokeAccessResponse(
        message=f"Access revoked for user: {user.display_name}",
        user_id=user.id,
        revoked_count=revoked,
    )
