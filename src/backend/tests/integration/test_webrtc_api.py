"""
Integration tests for WebRTC signaling API endpoints.

Tests:
- Session init for participants, 403/404 otherwise
- Signal relay responses and error mapping
- ICE candidates, heartbeat and end on owned sessions
- Offline sync returning signals held for the caller's peer id
"""

import pytest

from tests.factories import UserFactory, auth_headers, persist_user

OFFER = {"sdp": "v=0\r\no=- 4611731400430051336 2 IN IP4 127.0.0.1", "type": "offer"}


async def _init(client, meeting_id, headers, peer_id):
    response = await client.post(
        f"/api/v1/meetings/{meeting_id}/webrtc/init",
        json={"peer_id": peer_id},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


class TestInit:

    @pytest.mark.asyncio
    async def test_second_peer_sees_first(self, client, sample_meeting, sample_user, other_user):
        meeting_id = sample_meeting.id
        sara = auth_headers(sample_user)
        omar = auth_headers(other_user)

        first = await _init(client, meeting_id, sara, "peer-sara")
        second = await _init(client, meeting_id, omar, "peer-omar")

        assert first["active_peers"] == []
        assert first["is_offline_enabled"] is False
        assert second["peer_id"] == "peer-omar"
        assert len(second["active_peers"]) == 1
        peer = second["active_peers"][0]
        assert peer["id"] == first["session_id"]
        assert peer["peer_id"] == "peer-sara"
        assert peer["user"]["username"] == "sara.hassan"

    @pytest.mark.asyncio
    async def test_offline_meeting_flag(self, client, offline_meeting, sample_user):
        result = await _init(client, offline_meeting.id, auth_headers(sample_user), "peer-sara")

        assert result["is_offline_enabled"] is True

    @pytest.mark.asyncio
    async def test_non_participant_forbidden(self, client, sample_meeting, db_session):
        outsider = await persist_user(db_session, UserFactory.create())
        headers = auth_headers(outsider)

        response = await client.post(
            f"/api/v1/meetings/{sample_meeting.id}/webrtc/init",
            json={"peer_id": "peer-x"},
            headers=headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_meeting(self, client, sample_user):
        response = await client.post(
            "/api/v1/meetings/9999/webrtc/init",
            json={"peer_id": "peer-x"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_peer_id_required(self, client, sample_meeting, sample_user):
        response = await client.post(
            f"/api/v1/meetings/{sample_meeting.id}/webrtc/init",
            json={"peer_id": ""},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422


class TestSignal:

    @pytest.mark.asyncio
    async def test_live_signal(self, client, sample_meeting, sample_user, other_user, mock_publish_event):
        meeting_id = sample_meeting.id
        sara = auth_headers(sample_user)
        await _init(client, meeting_id, sara, "peer-sara")
        await _init(client, meeting_id, auth_headers(other_user), "peer-omar")
        mock_publish_event.reset_mock()

        response = await client.post(
            "/api/v1/webrtc/signal",
            json={
                "sender_peer_id": "peer-sara",
                "receiver_peer_id": "peer-omar",
                "meeting_id": meeting_id,
                "type": "offer",
                "payload": OFFER,
            },
            headers=sara,
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_publish_event.assert_awaited_once()
        assert mock_publish_event.await_args.args[1] == "peer.peer-omar"

    @pytest.mark.asyncio
    async def test_offline_signal_to_unknown_receiver(self, client, offline_meeting, sample_user):
        meeting_id = offline_meeting.id
        sara = auth_headers(sample_user)
        await _init(client, meeting_id, sara, "peer-sara")

        response = await client.post(
            "/api/v1/webrtc/signal",
            json={
                "sender_peer_id": "peer-sara",
                "receiver_peer_id": "peer-later",
                "meeting_id": meeting_id,
                "type": "offer",
                "payload": OFFER,
                "is_offline": True,
            },
            headers=sara,
        )

        assert response.json() == {"success": True, "stored_offline": True}

    @pytest.mark.asyncio
    async def test_unknown_receiver_online(self, client, sample_meeting, sample_user):
        meeting_id = sample_meeting.id
        sara = auth_headers(sample_user)
        await _init(client, meeting_id, sara, "peer-sara")

        response = await client.post(
            "/api/v1/webrtc/signal",
            json={
                "sender_peer_id": "peer-sara",
                "receiver_peer_id": "peer-ghost",
                "meeting_id": meeting_id,
                "type": "candidate",
                "payload": {"candidate": "candidate:1 1 UDP 2122252543 10.0.0.5 54321 typ host"},
            },
            headers=sara,
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Receiver peer not found"

    @pytest.mark.asyncio
    async def test_sender_owned_by_someone_else(self, client, sample_meeting, sample_user, other_user):
        meeting_id = sample_meeting.id
        omar = auth_headers(other_user)
        await _init(client, meeting_id, auth_headers(sample_user), "peer-sara")
        await _init(client, meeting_id, omar, "peer-omar")

        response = await client.post(
            "/api/v1/webrtc/signal",
            json={
                "sender_peer_id": "peer-sara",
                "receiver_peer_id": "peer-omar",
                "meeting_id": meeting_id,
                "type": "offer",
                "payload": OFFER,
            },
            headers=omar,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_meeting_is_field_error(self, client, sample_user):
        response = await client.post(
            "/api/v1/webrtc/signal",
            json={
                "sender_peer_id": "peer-sara",
                "receiver_peer_id": "peer-omar",
                "meeting_id": 9999,
                "type": "offer",
                "payload": OFFER,
            },
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "meeting_id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"type": "renegotiate"}, {"payload": {}}, {"payload": None}, {"sender_peer_id": ""}],
    )
    async def test_invalid_body(self, client, sample_meeting, sample_user, overrides):
        body = {
            "sender_peer_id": "peer-sara",
            "receiver_peer_id": "peer-omar",
            "meeting_id": sample_meeting.id,
            "type": "offer",
            "payload": OFFER,
        }
        body.update(overrides)

        response = await client.post("/api/v1/webrtc/signal", json=body, headers=auth_headers(sample_user))

        assert response.status_code == 422


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_candidates_heartbeat_and_end(self, client, sample_meeting, sample_user):
        sara = auth_headers(sample_user)
        session_id = (await _init(client, sample_meeting.id, sara, "peer-sara"))["session_id"]

        candidates = await client.post(
            f"/api/v1/webrtc/sessions/{session_id}/ice-candidates",
            json={"candidates": [{"candidate": "candidate:1", "sdpMid": "0", "sdpMLineIndex": 0}]},
            headers=sara,
        )
        assert candidates.json() == {"success": True}

        heartbeat = await client.post(f"/api/v1/webrtc/sessions/{session_id}/heartbeat", headers=sara)
        assert heartbeat.status_code == 200
        assert heartbeat.json()["last_heartbeat"].endswith("Z")

        ended = await client.post(f"/api/v1/webrtc/sessions/{session_id}/end", headers=sara)
        assert ended.json() == {"success": True}

        after_end = await client.post(f"/api/v1/webrtc/sessions/{session_id}/heartbeat", headers=sara)
        assert after_end.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["end", "heartbeat"])
    async def test_foreign_session_not_found(self, client, sample_meeting, sample_user, other_user, action):
        omar = auth_headers(other_user)
        session_id = (await _init(client, sample_meeting.id, auth_headers(sample_user), "peer-sara"))["session_id"]

        response = await client.post(f"/api/v1/webrtc/sessions/{session_id}/{action}", headers=omar)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_foreign_session_candidates_not_found(self, client, sample_meeting, sample_user, other_user):
        omar = auth_headers(other_user)
        session_id = (await _init(client, sample_meeting.id, auth_headers(sample_user), "peer-sara"))["session_id"]

        response = await client.post(
            f"/api/v1/webrtc/sessions/{session_id}/ice-candidates",
            json={"candidates": []},
            headers=omar,
        )

        assert response.status_code == 404


class TestOfflineSync:

    @pytest.mark.asyncio
    async def test_sync_returns_held_signals_and_replays_messages(
        self, client, offline_meeting, sample_user, other_user
    ):
        meeting_id = offline_meeting.id
        sara = auth_headers(sample_user)
        omar = auth_headers(other_user)
        await _init(client, meeting_id, sara, "peer-sara")
        await client.post(
            "/api/v1/webrtc/signal",
            json={
                "sender_peer_id": "peer-sara",
                "receiver_peer_id": "peer-omar",
                "meeting_id": meeting_id,
                "type": "offer",
                "payload": OFFER,
                "is_offline": True,
            },
            headers=sara,
        )
        omar_session = (await _init(client, meeting_id, omar, "peer-omar"))["session_id"]

        response = await client.post(
            f"/api/v1/webrtc/sessions/{omar_session}/sync",
            json={
                "offline_data": {"muted": True},
                "messages": [
                    {"content": "Back online", "timestamp": "2026-10-19T08:15:00+02:00"},
                    {"content": ""},
                ],
            },
            headers=omar,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["replayed_messages"] == 1
        assert len(body["pending_signals"]) == 1
        signal = body["pending_signals"][0]
        assert signal["meeting_id"] == meeting_id
        assert signal["sender_peer_id"] == "peer-sara"
        assert signal["receiver_peer_id"] == "peer-omar"
        assert signal["is_offline"] is True
        assert signal["type"] == "offer"
        assert signal["payload"] == OFFER

        history = await client.get(f"/api/v1/meetings/{meeting_id}/messages", headers=omar)
        replayed = history.json()["messages"][0]
        assert replayed["message"] == "Back online"
        assert replayed["is_offline"] is True
        assert replayed["created_at"] == "2026-10-19T06:15:00Z"

    @pytest.mark.asyncio
    async def test_sync_requires_offline_data(self, client, sample_meeting, sample_user):
        sara = auth_headers(sample_user)
        session_id = (await _init(client, sample_meeting.id, sara, "peer-sara"))["session_id"]

        response = await client.post(f"/api/v1/webrtc/sessions/{session_id}/sync", json={}, headers=sara)

        assert response.status_code == 422
