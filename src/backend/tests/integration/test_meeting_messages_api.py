"""
Integration tests for meeting chat API endpoints.
"""

import pytest

from tests.factories import UserFactory, auth_headers, persist_user


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_send_and_read_back(self, client, sample_meeting, sample_user, other_user, mock_publish_event):
        meeting_id = sample_meeting.id
        sara = auth_headers(sample_user)
        omar = auth_headers(other_user)

        sent = await client.post(
            f"/api/v1/meetings/{meeting_id}/messages",
            json={"message": "Photos of the spill are uploaded"},
            headers=sara,
        )

        assert sent.status_code == 200
        body = sent.json()
        assert body["success"] is True
        assert body["message"]["message"] == "Photos of the spill are uploaded"
        assert body["message"]["is_offline"] is False
        assert body["message"]["user"]["full_name"] == "Sara Hassan"
        mock_publish_event.assert_awaited_once()

        history = await client.get(f"/api/v1/meetings/{meeting_id}/messages", headers=omar)
        assert [m["id"] for m in history.json()["messages"]] == [body["message"]["id"]]

    @pytest.mark.asyncio
    async def test_offline_message_stored_only(self, client, offline_meeting, sample_user, mock_publish_event):
        response = await client.post(
            f"/api/v1/meetings/{offline_meeting.id}/messages",
            json={"message": "Drafted offline", "is_offline": True},
            headers=auth_headers(sample_user),
        )

        assert response.json()["message"]["is_offline"] is True
        mock_publish_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, client, sample_meeting, sample_user):
        response = await client.post(
            f"/api/v1/meetings/{sample_meeting.id}/messages",
            json={"message": ""},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_non_participant_forbidden(self, client, sample_meeting, db_session):
        outsider = await persist_user(db_session, UserFactory.create())
        headers = auth_headers(outsider)
        meeting_id = sample_meeting.id

        sent = await client.post(
            f"/api/v1/meetings/{meeting_id}/messages", json={"message": "hi"}, headers=headers
        )
        listed = await client.get(f"/api/v1/meetings/{meeting_id}/messages", headers=headers)

        assert sent.status_code == 403
        assert listed.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_meeting(self, client, sample_user):
        headers = auth_headers(sample_user)

        sent = await client.post("/api/v1/meetings/9999/messages", json={"message": "hi"}, headers=headers)
        listed = await client.get("/api/v1/meetings/9999/messages", headers=headers)

        assert sent.status_code == 404
        assert listed.status_code == 404
