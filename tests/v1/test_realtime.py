# mypy: ignore-errors
# tests/v1/test_realtime.py
"""Tests for the live event WebSocket."""

from rchat.core.security import create_access_token
from rchat.core.settings import settings
from rchat.models import ServerMember


def test_guest_connection_without_token(client, manager) -> None:
    with client.websocket_connect("/ws") as websocket:
        assert websocket.receive_json() == {"type": "connected", "username": settings.guest_username}
        websocket.send_json({"type": "heartbeat"})
        assert websocket.receive_json() == {"type": "pong"}
        assert manager.online_usernames() == set()


def test_invalid_token_falls_back_to_guest(client) -> None:
    with client.websocket_connect("/ws?token=garbage") as websocket:
        assert websocket.receive_json()["username"] == settings.guest_username


def test_authenticated_connection_marks_member_online(client, alice, community, db_session, manager) -> None:
    token = create_access_token(alice.username)
    with client.websocket_connect(f"/ws?token={token}") as websocket:
        assert websocket.receive_json() == {"type": "connected", "username": "alice"}
        presence = websocket.receive_json()
        assert presence == {
            "type": "user_online_status_changed",
            "server_name": "Gaming",
            "username": "alice",
            "is_online": True,
        }
        assert "alice" in manager.online_usernames()
        db_session.expire_all()
        assert db_session.get(ServerMember, ("Gaming", "alice")).is_online is True


def test_bearer_header_is_accepted(client, alice) -> None:
    headers = {"Authorization": f"Bearer {create_access_token(alice.username)}"}
    with client.websocket_connect("/ws", headers=headers) as websocket:
        assert websocket.receive_json()["username"] == "alice"


def test_malformed_frames_are_ignored(client) -> None:
    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_text("not json")
        assert websocket.receive_json() == {"type": "error", "message": "Malformed frame"}
        websocket.send_json({"type": "heartbeat"})
        assert websocket.receive_json() == {"type": "pong"}
