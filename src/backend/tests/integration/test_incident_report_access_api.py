"""
Integration tests for incident report access API endpoints.

Tests:
- Super admin gate on management endpoints
- Grant, read, update, extend, deactivate and revoke
- 422 field errors shaped like request validation errors
- Listing with filters and pagination metadata
- Capability check for the current user
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from db import IncidentReportAccess, utc_now
from services.access_grant_service import GLOBAL_ACCESS_EXISTS, SCOPE_CONFLICT_GLOBAL
from tests.factories import AccessGrantFactory, auth_headers, persist

BASE_URL = "/api/v1/incident-report-access"


class TestAuthorization:

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get(BASE_URL)

        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, client):
        response = await client.get(BASE_URL, headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client, sample_user):
        response = await client.get(BASE_URL, headers=auth_headers(sample_user))

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Super admin privileges required."


class TestGrantEndpoints:

    @pytest.mark.asyncio
    async def test_grant_global_access(self, client, super_admin, sample_user):
        headers = auth_headers(super_admin)

        response = await client.post(
            BASE_URL,
            json={"user_id": sample_user.id, "access_type": "full", "notes": "Audit"},
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["user_id"] == sample_user.id
        assert body["granted_by"] == super_admin.id
        assert body["is_global"] is True
        assert body["is_valid"] is True
        assert body["is_expired"] is False
        assert body["user"]["username"] == sample_user.username
        assert body["created_at"].endswith("Z")

    @pytest.mark.asyncio
    async def test_grant_with_aware_expiry_normalized(self, client, super_admin, sample_user, sample_report):
        headers = auth_headers(super_admin)
        expires = (datetime.now(timezone(timedelta(hours=2))) + timedelta(days=3)).replace(microsecond=0)

        response = await client.post(
            BASE_URL,
            json={
                "user_id": sample_user.id,
                "access_type": "read_only",
                "incident_report_id": sample_report.id,
                "expires_at": expires.isoformat(),
            },
            headers=headers,
        )

        assert response.status_code == 201
        expected = expires.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
        assert response.json()["expires_at"] == expected
        assert response.json()["incident_report"]["id"] == sample_report.id

    @pytest.mark.asyncio
    async def test_duplicate_grant_is_field_error(self, client, super_admin, sample_user):
        headers = auth_headers(super_admin)
        payload = {"user_id": sample_user.id, "access_type": "full"}
        await client.post(BASE_URL, json=payload, headers=headers)

        response = await client.post(BASE_URL, json=payload, headers=headers)

        assert response.status_code == 422
        assert response.json()["detail"] == [
            {"loc": ["body", "user_id"], "msg": SCOPE_CONFLICT_GLOBAL, "type": "value_error"}
        ]

    @pytest.mark.asyncio
    async def test_specific_under_global_is_field_error(self, client, super_admin, sample_user, sample_report):
        headers = auth_headers(super_admin)
        await client.post(BASE_URL, json={"user_id": sample_user.id, "access_type": "full"}, headers=headers)

        response = await client.post(
            BASE_URL,
            json={"user_id": sample_user.id, "access_type": "full", "incident_report_id": sample_report.id},
            headers=headers,
        )

        assert response.status_code == 422
        error = response.json()["detail"][0]
        assert error["loc"] == ["body", "incident_report_id"]
        assert error["msg"] == GLOBAL_ACCESS_EXISTS

    @pytest.mark.asyncio
    async def test_invalid_access_type_rejected(self, client, super_admin, sample_user):
        response = await client.post(
            BASE_URL,
            json={"user_id": sample_user.id, "access_type": "owner"},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_past_expiry_rejected(self, client, super_admin, sample_user):
        response = await client.post(
            BASE_URL,
            json={
                "user_id": sample_user.id,
                "access_type": "full",
                "expires_at": (utc_now() - timedelta(days=1)).isoformat(),
            },
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "expires_at"]


class TestGrantLifecycle:

    @pytest.mark.asyncio
    async def test_get_update_extend_and_delete(self, client, super_admin, sample_user):
        headers = auth_headers(super_admin)
        created = await client.post(
            BASE_URL,
            json={"user_id": sample_user.id, "access_type": "read_only"},
            headers=headers,
        )
        grant_id = created.json()["id"]

        fetched = await client.get(f"{BASE_URL}/{grant_id}", headers=headers)
        assert fetched.status_code == 200
        assert fetched.json()["access_type"] == "read_only"

        updated = await client.put(
            f"{BASE_URL}/{grant_id}",
            json={"access_type": "incidents_only", "notes": "Scoped down"},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["access_type"] == "incidents_only"
        assert updated.json()["notes"] == "Scoped down"

        extended = await client.post(
            f"{BASE_URL}/{grant_id}/extend", json={"extension_days": 30}, headers=headers
        )
        assert extended.status_code == 200
        assert extended.json()["expires_at"] is not None

        deleted = await client.delete(f"{BASE_URL}/{grant_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()["is_active"] is False
        assert deleted.json()["is_valid"] is False

        reactivated = await client.put(
            f"{BASE_URL}/{grant_id}",
            json={"access_type": "full", "is_active": True},
            headers=headers,
        )
        assert reactivated.status_code == 422
        assert reactivated.json()["detail"][0]["loc"] == ["body", "is_active"]

    @pytest.mark.asyncio
    async def test_update_expiry(self, client, super_admin, sample_user, db_session):
        headers = auth_headers(super_admin)
        grant = await persist(db_session, AccessGrantFactory.create(sample_user.id))
        grant_id = grant.id

        response = await client.put(
            f"{BASE_URL}/{grant_id}",
            json={"access_type": "full", "expires_at": "2030-01-01T00:00:00Z"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["expires_at"] == "2030-01-01T00:00:00Z"
        stored = await db_session.execute(
            select(IncidentReportAccess)
            .where(IncidentReportAccess.id == grant_id)
            .execution_options(populate_existing=True)
        )
        assert stored.scalar_one().expires_at == datetime(2030, 1, 1)

    @pytest.mark.asyncio
    async def test_update_requires_access_type(self, client, super_admin, sample_user, db_session):
        headers = auth_headers(super_admin)
        grant = await persist(db_session, AccessGrantFactory.create(sample_user.id))

        response = await client.put(f"{BASE_URL}/{grant.id}", json={"notes": "x"}, headers=headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, 366])
    async def test_extend_bounds(self, client, super_admin, sample_user, db_session, days):
        headers = auth_headers(super_admin)
        grant = await persist(db_session, AccessGrantFactory.create(sample_user.id))

        response = await client.post(
            f"{BASE_URL}/{grant.id}/extend", json={"extension_days": days}, headers=headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("get", "/9999", None),
            ("put", "/9999", {"access_type": "full"}),
            ("delete", "/9999", None),
            ("post", "/9999/extend", {"extension_days": 5}),
            ("post", "/users/9999/revoke", None),
        ],
    )
    async def test_unknown_ids_return_404(self, client, super_admin, method, path, body):
        headers = auth_headers(super_admin)
        kwargs = {"headers": headers}
        if body is not None:
            kwargs["json"] = body

        response = await getattr(client, method)(f"{BASE_URL}{path}", **kwargs)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_revoke_user_access(self, client, super_admin, sample_user, sample_report, db_session):
        headers = auth_headers(super_admin)
        await persist(db_session, AccessGrantFactory.create(sample_user.id))
        await persist(
            db_session, AccessGrantFactory.create(sample_user.id, incident_report_id=sample_report.id)
        )

        response = await client.post(f"{BASE_URL}/users/{sample_user.id}/revoke", headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "message": "Access revoked for user: Sara Hassan",
            "user_id": sample_user.id,
            "revoked_count": 2,
        }


class TestListing:

    @pytest.mark.asyncio
    async def test_list_with_pagination_metadata(self, client, super_admin, sample_user, other_user, db_session):
        headers = auth_headers(super_admin)
        await persist(db_session, AccessGrantFactory.create(sample_user.id))
        await persist(db_session, AccessGrantFactory.create(other_user.id, access_type="full"))
        await persist(db_session, AccessGrantFactory.create_expired(other_user.id, incident_report_id=None, is_active=False))

        response = await client.get(BASE_URL, params={"per_page": 2}, headers=headers)

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 3
        assert body["page"] == 1
        assert body["per_page"] == 2
        assert body["last_page"] == 2
        assert len(body["data"]) == 2

    @pytest.mark.asyncio
    async def test_list_filters(self, client, super_admin, sample_user, other_user, db_session):
        headers = auth_headers(super_admin)
        await persist(db_session, AccessGrantFactory.create(sample_user.id, access_type="full"))
        expired = await persist(db_session, AccessGrantFactory.create_expired(other_user.id))

        response = await client.get(
            BASE_URL, params={"status": "expired", "report_type": "global"}, headers=headers
        )

        assert [row["id"] for row in response.json()["data"]] == [expired.id]
        assert response.json()["data"][0]["is_expired"] is True

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_filter_value(self, client, super_admin):
        response = await client.get(BASE_URL, params={"status": "pending"}, headers=auth_headers(super_admin))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_available_users(self, client, super_admin, sample_user, other_user, db_session):
        headers = auth_headers(super_admin)
        await persist(db_session, AccessGrantFactory.create(other_user.id))

        response = await client.get(f"{BASE_URL}/available-users", headers=headers)

        assert response.status_code == 200
        assert [user["id"] for user in response.json()] == [sample_user.id]


class TestCheckEndpoint:

    @pytest.mark.asyncio
    async def test_grantee_check(self, client, sample_user, sample_report, db_session):
        headers = auth_headers(sample_user)
        grant = await persist(
            db_session,
            AccessGrantFactory.create(sample_user.id, incident_report_id=sample_report.id),
        )

        allowed = await client.get(
            f"{BASE_URL}/check",
            params={"capability": "read_only", "incident_report_id": sample_report.id},
            headers=headers,
        )
        denied = await client.get(
            f"{BASE_URL}/check",
            params={"capability": "delete", "incident_report_id": sample_report.id},
            headers=headers,
        )

        assert allowed.json()["allowed"] is True
        assert allowed.json()["grant_id"] == grant.id
        assert allowed.json()["access_type"] == "read_only"
        assert denied.json()["allowed"] is False
        assert denied.json()["grant_id"] is None

    @pytest.mark.asyncio
    async def test_admin_check_has_no_grant(self, client, super_admin):
        response = await client.get(
            f"{BASE_URL}/check", params={"capability": "full"}, headers=auth_headers(super_admin)
        )

        assert response.json()["allowed"] is True
        assert response.json()["grant_id"] is None
