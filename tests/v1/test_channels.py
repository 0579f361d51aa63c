# mypy: ignore-errors
# tests/v1/test_channels.py
"""Tests for channel endpoints."""

from fastapi import status

from rchat.models import Channel, Server
from rchat.services.servers import join_server


def test_list_channels(client, alice_headers, community) -> None:
    response = client.get("/api/v1/servers/Gaming/channels/", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [c["name"] for c in response.json()] == ["general"]


def test_create_channel_appends_and_updates_count(
    client, alice_headers, community, db_session, published
) -> None:
    response = client.post(
        "/api/v1/servers/Gaming/channels/",
        json={"name": "raids"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["name"] == "raids"
    assert data["position"] == 1

    assert db_session.get(Server, "Gaming").channel_count == 2
    events = published()
    assert [e.type for e in events] == ["channel_created", "server_stats_updated"]
    assert events[0].channel_name == "raids"
    assert events[1].channel_count == 2


def test_create_channel_duplicate_name(client, alice_headers, community) -> None:
    response = client.post(
        "/api/v1/servers/Gaming/channels/",
        json={"name": "GENERAL"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_plain_member_cannot_create_channel(client, bob, bob_headers, community, db_session) -> None:
    join_server(db_session, "Gaming", "bob")
    response = client.post(
        "/api/v1/servers/Gaming/channels/",
        json={"name": "raids"},
        headers=bob_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "insufficient_role"


def test_site_admin_can_create_channel_anywhere(client, admin_headers, community) -> None:
    response = client.post(
        "/api/v1/servers/Gaming/channels/",
        json={"name": "announcements"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED


def test_rename_channel(client, alice_headers, community_channel, published) -> None:
    response = client.patch(
        f"/api/v1/servers/Gaming/channels/{community_channel.id}",
        json={"name": "lobby"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["name"] == "lobby"
    events = published()
    assert events[0].type == "channel_renamed"
    assert events[0].new_name == "lobby"


def test_rename_channel_unknown_id(client, alice_headers, community) -> None:
    response = client.patch(
        "/api/v1/servers/Gaming/channels/does-not-exist",
        json={"name": "lobby"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_last_channel_rejected(client, alice_headers, community_channel) -> None:
    response = client.delete(
        f"/api/v1/servers/Gaming/channels/{community_channel.id}",
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Cannot delete the last channel"


def test_delete_channel_is_soft_and_name_reusable(
    client, alice_headers, community, db_session, published
) -> None:
    created = client.post(
        "/api/v1/servers/Gaming/channels/",
        json={"name": "raids"},
        headers=alice_headers,
    ).json()
    published()

    response = client.delete(
        f"/api/v1/servers/Gaming/channels/{created['id']}",
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_204_NO_CONTENT
    channel = db_session.get(Channel, created["id"])
    assert channel.is_active is False
    assert db_session.get(Server, "Gaming").channel_count == 1
    assert [e.type for e in published()] == ["channel_deleted", "server_stats_updated"]

    listed = client.get("/api/v1/servers/Gaming/channels/", headers=alice_headers).json()
    assert [c["name"] for c in listed] == ["general"]

    again = client.post(
        "/api/v1/servers/Gaming/channels/",
        json={"name": "raids"},
        headers=alice_headers,
    )
    assert again.status_code == status.HTTP_201_CREATED
    assert again.json()["id"] == created["id"]
