"""
Unit tests for incident report capability checks.

Tests:
- Capability matrix per access type
- Report grant first, global grant as fallback
- Expired and inactive grants never satisfy a check
- Administrators bypass grants
"""

from datetime import timedelta

import pytest

from core.dependencies import has_role, is_administrator
from db import AccessCapability, Role, utc_now
from services.access_grant_service import AccessGrantService
from tests.factories import AccessGrantFactory, assign_role, persist


class TestCapabilityMatrix:
    """IncidentReportAccess.has_access_type without the database."""

    @pytest.mark.parametrize(
        "access_type,capability,expected",
        [
            ("full", "full", True),
            ("full", "read_only", True),
            ("full", "incidents_only", True),
            ("full", "create", True),
            ("full", "update", True),
            ("full", "delete", True),
            ("read_only", "read_only", True),
            ("read_only", "full", False),
            ("read_only", "incidents_only", False),
            ("read_only", "create", False),
            ("incidents_only", "incidents_only", True),
            ("incidents_only", "read_only", False),
            ("incidents_only", "delete", False),
        ],
    )
    def test_access_type_satisfies_capability(self, access_type, capability, expected):
        grant = AccessGrantFactory.create(1, access_type=access_type)

        assert grant.has_access_type(capability) is expected

    def test_unknown_capability_denied(self):
        grant = AccessGrantFactory.create(1, access_type="full")

        assert grant.has_access_type("approve") is False

    def test_enum_capability_accepted(self):
        grant = AccessGrantFactory.create(1, access_type="read_only")

        assert grant.has_access_type(AccessCapability.READ_ONLY) is True

    def test_expired_grant_has_no_capability(self):
        grant = AccessGrantFactory.create_expired(1, access_type="full")

        assert grant.is_active is True
        assert grant.is_expired() is True
        assert grant.is_valid() is False
        assert grant.has_access_type("read_only") is False

    def test_inactive_grant_has_no_capability(self):
        grant = AccessGrantFactory.create(1, access_type="full", is_active=False)

        assert grant.has_access_type("read_only") is False

    def test_expiry_evaluated_at_given_time(self):
        expires_at = utc_now() + timedelta(hours=1)
        grant = AccessGrantFactory.create(1, expires_at=expires_at)

        assert grant.is_valid() is True
        assert grant.is_valid(expires_at + timedelta(seconds=1)) is False


class TestFindEffectiveGrant:
    """Report-specific grant first, then global fallback."""

    @pytest.mark.asyncio
    async def test_report_grant_used_for_its_report(self, db_session, sample_user, sample_report):
        grant = await persist(
            db_session,
            AccessGrantFactory.create(sample_user.id, incident_report_id=sample_report.id),
        )

        found = await AccessGrantService.find_effective_grant(
            db_session, sample_user.id, "read_only", sample_report.id
        )

        assert found.id == grant.id

    @pytest.mark.asyncio
    async def test_report_grant_does_not_cover_other_reports(
        self, db_session, sample_user, sample_report, second_report
    ):
        await persist(
            db_session,
            AccessGrantFactory.create(sample_user.id, incident_report_id=sample_report.id),
        )

        found = await AccessGrantService.find_effective_grant(
            db_session, sample_user.id, "read_only", second_report.id
        )

        assert found is None

    @pytest.mark.asyncio
    async def test_weak_report_grant_falls_back_to_global(
        self, db_session, sample_user, sample_report
    ):
        """An incidents_only report grant does not hide a full global grant."""
        await persist(
            db_session,
            AccessGrantFactory.create(
                sample_user.id, incident_report_id=sample_report.id, access_type="incidents_only"
            ),
        )
        global_grant = await persist(
            db_session, AccessGrantFactory.create(sample_user.id, access_type="full")
        )

        found = await AccessGrantService.find_effective_grant(
            db_session, sample_user.id, "update", sample_report.id
        )

        assert found.id == global_grant.id

    @pytest.mark.asyncio
    async def test_expired_report_grant_falls_back_to_global(
        self, db_session, sample_user, sample_report
    ):
        await persist(
            db_session,
            AccessGrantFactory.create_expired(
                sample_user.id, incident_report_id=sample_report.id, access_type="full"
            ),
        )
        global_grant = await persist(db_session, AccessGrantFactory.create(sample_user.id))

        found = await AccessGrantService.find_effective_grant(
            db_session, sample_user.id, "read_only", sample_report.id
        )

        assert found.id == global_grant.id

    @pytest.mark.asyncio
    async def test_global_check_ignores_report_grants(self, db_session, sample_user, sample_report):
        await persist(
            db_session,
            AccessGrantFactory.create(
                sample_user.id, incident_report_id=sample_report.id, access_type="full"
            ),
        )

        found = await AccessGrantService.find_effective_grant(db_session, sample_user.id, "read_only")

        assert found is None


class TestCanAccess:
    """AccessGrantService.can_access including the administrator bypass."""

    @pytest.mark.asyncio
    async def test_user_without_grants_denied(self, db_session, sample_user, sample_report):
        assert await AccessGrantService.can_access(db_session, sample_user) is False
        assert await AccessGrantService.can_access(
            db_session, sample_user, "read_only", sample_report.id
        ) is False

    @pytest.mark.asyncio
    async def test_grantee_allowed_within_capability(self, db_session, sample_user):
        await persist(db_session, AccessGrantFactory.create(sample_user.id, access_type="read_only"))

        assert await AccessGrantService.can_access(db_session, sample_user, "read_only") is True
        assert await AccessGrantService.can_access(db_session, sample_user, "delete") is False

    @pytest.mark.asyncio
    async def test_super_admin_flag_bypasses_grants(self, db_session, super_admin, sample_report):
        assert await AccessGrantService.can_access(
            db_session, super_admin, "delete", sample_report.id
        ) is True

    @pytest.mark.asyncio
    async def test_admin_role_bypasses_grants(self, db_session, sample_user, admin_role):
        user = await assign_role(db_session, sample_user, admin_role)

        assert is_administrator(user) is True
        assert await AccessGrantService.can_access(db_session, user, "full") is True

    @pytest.mark.asyncio
    async def test_inactive_role_does_not_count(self, db_session, sample_user):
        role = await persist(db_session, Role(name="superadmin", is_active=False))
        user = await assign_role(db_session, sample_user, role)

        assert has_role(user, "superadmin") is False
        assert is_administrator(user) is False
