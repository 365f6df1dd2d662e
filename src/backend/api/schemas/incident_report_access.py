"""
Incident report access grant schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from api.schemas.user import UserSummary
from core.schema_base import HTTPSchemaModel, to_naive_utc
from db import AccessCapability, AccessType


class IncidentReportSummary(HTTPSchemaModel):
    id: int
    report_number: str
    report_date: Optional[datetime] = None


class IncidentReportAccessCreate(HTTPSchemaModel):
    """Schema for granting access."""

    user_id: int = Field(..., gt=0)
    incident_report_id: Optional[int] = Field(
        None, gt=0, description="Report scope; omit for global access"
    )
    access_type: AccessType
    notes: Optional[str] = Field(None, max_length=1000)
    expires_at: Optional[datetime] = Field(None, description="Must be in the future; omit for no expiry")

    @field_validator("expires_at")
    @classmethod
    def normalize_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class IncidentReportAccessUpdate(HTTPSchemaModel):
    """Schema for editing a grant. Only submitted fields are applied."""

    incident_report_id: Optional[int] = Field(None, gt=0)
    access_type: AccessType
    notes: Optional[str] = Field(None, max_length=1000)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @field_validator("is_active")
    @classmethod
    def reject_null_is_active(cls, value: Optional[bool]) -> Optional[bool]:
        if value is None:
            raise ValueError("is_active must be true or false")
        return value


class AccessExtendRequest(HTTPSchemaModel):
    extension_days: int = Field(..., ge=1, le=365)


class IncidentReportAccessRead(HTTPSchemaModel):
    """Schema for reading a grant, with its derived validity."""

    id: int
    user_id: int
    incident_report_id: Optional[int] = None
    granted_by: Optional[int] = None
    access_type: str
    notes: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    is_global: bool
    is_expired: bool
    is_valid: bool
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    granter: Optional[UserSummary] = None
    incident_report: Optional[IncidentReportSummary] = None

    @classmethod
    def from_grant(cls, grant) -> "IncidentReportAccessRead":
        """Build from an IncidentReportAccess row, evaluating expiry now."""
        return cls(
            id=grant.id,
            user_id=grant.user_id,
            incident_report_id=grant.incident_report_id,
            granted_by=grant.granted_by,
            access_type=grant.access_type,
            notes=grant.notes,
            expires_at=grant.expires_at,
            is_active=grant.is_active,
            is_global=grant.is_global,
            is_expired=grant.is_expired(),
            is_valid=grant.is_valid(),
            created_at=grant.created_at,
            updated_at=grant.updated_at,
            user=UserSummary.model_validate(grant.user) if grant.user else None,
            granter=UserSummary.model_validate(grant.granter) if grant.granter else None,
            incident_report=(
                IncidentReportSummary.model_validate(grant.incident_report)
                if grant.incident_report
                else None
            ),
        )


class IncidentReportAccessListResponse(HTTPSchemaModel):
    """Paginated grant listing."""

    data: List[IncidentReportAccessRead]
    total: int
    page: int
    per_page: int
    last_page: int


class RevokeAccessResponse(HTTPSchemaModel):
    message: str
    user_id: int
    revoked_count: int


class AccessCheckResponse(HTTPSchemaModel):
    """Result of a capability check for the current user."""

    allowed: bool
    capability: AccessCapability
    incident_report_id: Optional[int] = None
    grant_id: Optional[int] = None
    access_type: Optional[str] = None
    expires_at: Optional[datetime] = None
