# mypy: ignore-errors
# tests/v1/test_servers.py
"""Tests for community lifecycle endpoints."""

from fastapi import status

from rchat.models import Channel, Message, Server, ServerMember
from rchat.services.servers import join_server


def test_create_server(client, alice_headers, db_session, published) -> None:
    response = client.post("/api/v1/servers/", json={"name": "Book Club"}, headers=alice_headers)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["name"] == "Book Club"
    assert data["creator_username"] == "alice"
    assert data["member_count"] == 1
    assert data["channel_count"] == 1

    membership = db_session.get(ServerMember, ("Book Club", "alice"))
    assert membership.role == "admin"
    channels = db_session.query(Channel).filter(Channel.server_name == "Book Club").all()
    assert [c.name for c in channels] == ["general"]

    events = published()
    assert [e.type for e in events] == ["server_created"]
    assert events[0].owner_username == "alice"


def test_create_server_duplicate_name_case_insensitive(client, alice_headers, community) -> None:
    response = client.post("/api/v1/servers/", json={"name": "gaming"}, headers=alice_headers)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_create_server_rejects_profane_name(client, alice_headers) -> None:
    response = client.post("/api/v1/servers/", json={"name": "shit talk"}, headers=alice_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_list_my_servers_in_saved_order(client, alice, alice_headers, db_session, community) -> None:
    client.post("/api/v1/servers/", json={"name": "Alpha"}, headers=alice_headers)

    reorder = client.put(
        "/api/v1/servers/order",
        json={"server_names": ["Alpha", "Gaming"]},
        headers=alice_headers,
    )
    assert reorder.status_code == status.HTTP_204_NO_CONTENT

    response = client.get("/api/v1/servers/", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [s["name"] for s in data] == ["Alpha", "Gaming"]
    assert all(s["role"] == "admin" for s in data)


def test_get_server_case_insensitive(client, alice_headers, community) -> None:
    response = client.get("/api/v1/servers/GAMING", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["name"] == "Gaming"


def test_get_missing_server(client, alice_headers) -> None:
    response = client.get("/api/v1/servers/nowhere", headers=alice_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "not_found", "message": "Server not found"}


def test_join_server_updates_counts_and_is_idempotent(
    client, bob_headers, community, db_session, published
) -> None:
    first = client.post("/api/v1/servers/Gaming/join", headers=bob_headers)
    second = client.post("/api/v1/servers/Gaming/join", headers=bob_headers)
    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_200_OK
    assert second.json()["member_count"] == 2

    types = [e.type for e in published()]
    assert types == ["server_member_joined", "server_stats_updated"]


def test_leave_server(client, bob, bob_headers, community, db_session, published) -> None:
    join_server(db_session, "Gaming", "bob")
    published()

    response = client.post("/api/v1/servers/Gaming/leave", headers=bob_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert db_session.get(ServerMember, ("Gaming", "bob")) is None

    events = published()
    assert [e.type for e in events] == ["server_member_left", "server_stats_updated"]
    assert events[1].member_count == 1


def test_creator_cannot_leave(client, alice_headers, community) -> None:
    response = client.post("/api/v1/servers/Gaming/leave", headers=alice_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Cannot remove server creator"


def test_nobody_leaves_default_server(client, alice, alice_headers, default_server, db_session) -> None:
    join_server(db_session, default_server[0].name, "alice")
    response = client.post(f"/api/v1/servers/{default_server[0].name}/leave", headers=alice_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_member_list_includes_avatar_data(client, alice_headers, bob, community, db_session) -> None:
    join_server(db_session, "Gaming", "bob")
    response = client.get("/api/v1/servers/Gaming/members", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    rows = {row["username"]: row for row in response.json()}
    assert set(rows) == {"alice", "bob"}
    assert rows["alice"]["role"] == "admin"
    assert rows["bob"]["avatar_color"] == "#123456"


def test_admin_removes_member(client, alice_headers, bob, community, db_session) -> None:
    join_server(db_session, "Gaming", "bob")
    response = client.delete("/api/v1/servers/Gaming/members/bob", headers=alice_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert db_session.get(ServerMember, ("Gaming", "bob")) is None


def test_member_cannot_remove_others(client, bob_headers, make_user, community, db_session) -> None:
    make_user("carol")
    join_server(db_session, "Gaming", "bob")
    join_server(db_session, "Gaming", "carol")
    response = client.delete("/api/v1/servers/Gaming/members/carol", headers=bob_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "insufficient_role"


def test_non_member_cannot_remove_members(client, bob_headers, community) -> None:
    response = client.delete("/api/v1/servers/Gaming/members/alice", headers=bob_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "not_a_member"


def test_update_member_role(client, alice_headers, bob, community, db_session, published) -> None:
    join_server(db_session, "Gaming", "bob")
    published()

    response = client.patch(
        "/api/v1/servers/Gaming/members/bob/role",
        json={"role": "admin"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"username": "bob", "role": "admin"}
    assert db_session.get(ServerMember, ("Gaming", "bob")).role == "admin"
    events = published()
    assert events[0].type == "server_member_role_updated"
    assert events[0].new_role == "admin"


def test_creator_role_is_fixed(client, bob, bob_headers, community, db_session) -> None:
    join_server(db_session, "Gaming", "bob")
    membership = db_session.get(ServerMember, ("Gaming", "bob"))
    membership.role = "admin"
    db_session.flush()

    response = client.patch(
        "/api/v1/servers/Gaming/members/alice/role",
        json={"role": "member"},
        headers=bob_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_transfer_ownership(client, alice_headers, bob, community, db_session) -> None:
    join_server(db_session, "Gaming", "bob")
    response = client.post(
        "/api/v1/servers/Gaming/transfer",
        json={"new_owner": "bob"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["creator_username"] == "bob"
    assert db_session.get(ServerMember, ("Gaming", "bob")).role == "admin"
    assert db_session.get(ServerMember, ("Gaming", "alice")).role == "member"


def test_transfer_requires_member_target(client, alice_headers, bob, community) -> None:
    response = client.post(
        "/api/v1/servers/Gaming/transfer",
        json={"new_owner": "bob"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_delete_server_removes_everything(
    client, alice_headers, community, community_channel, db_session, published
) -> None:
    db_session.add(
        Message(channel_id=community_channel.id, sender_username="alice", content="bye")
    )
    db_session.flush()

    response = client.delete("/api/v1/servers/Gaming", headers=alice_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    db_session.expire_all()
    assert db_session.get(Server, "Gaming") is None
    assert db_session.query(Channel).filter(Channel.server_name == "Gaming").count() == 0
    assert db_session.query(ServerMember).filter(ServerMember.server_name == "Gaming").count() == 0
    assert db_session.query(Message).count() == 0
    assert [e.type for e in published()] == ["server_deleted"]


def test_only_creator_or_site_admin_deletes_server(
    client, bob, bob_headers, admin_headers, community, db_session
) -> None:
    join_server(db_session, "Gaming", "bob")
    denied = client.delete("/api/v1/servers/Gaming", headers=bob_headers)
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    allowed = client.delete("/api/v1/servers/Gaming", headers=admin_headers)
    assert allowed.status_code == status.HTTP_204_NO_CONTENT


def test_default_server_cannot_be_deleted(client, admin_headers, default_server) -> None:
    response = client.delete(f"/api/v1/servers/{default_server[0].name}", headers=admin_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_endpoints_require_auth(client) -> None:
    response = client.get("/api/v1/servers/")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)
