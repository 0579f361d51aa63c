# src/rchat/api/v1/endpoints/servers.py
"""Community ("server") endpoints for the RChat API."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from rchat.models import Server, ServerBan, ServerMember, User
from rchat.schemas.moderation import CommunityBanRequest, ServerBanResponse
from rchat.schemas.server import (
    MemberResponse,
    OwnershipTransfer,
    RoleUpdate,
    ServerCreate,
    ServerOrder,
    ServerResponse,
    UserServerResponse,
)
from rchat.services import moderation, servers

from ..dependencies import CurrentUserDep, ManagerDep, SessionDep

router = APIRouter(prefix="/servers", tags=["servers"])


def member_responses(rows: list[tuple[ServerMember, User]]) -> list[MemberResponse]:
    """Flatten ``(membership, user)`` rows into API member entries."""
    return [
        MemberResponse(
            username=membership.username,
            role=membership.role,
            is_online=membership.is_online,
            joined_at=membership.joined_at,
            last_seen=membership.last_seen,
            profile_type=user.profile_type,
            avatar_color=user.avatar_color,
        )
        for membership, user in rows
    ]


@router.get("/", response_model=list[UserServerResponse])
async def list_my_servers(current_user: CurrentUserDep, db: SessionDep) -> list[UserServerResponse]:
    """List the caller's communities in their preferred order."""
    rows = servers.get_user_servers(db, current_user.username)
    return [
        UserServerResponse(
            name=server.name,
            creator_username=server.creator_username,
            is_active=server.is_active,
            member_count=server.member_count,
            channel_count=server.channel_count,
            created_at=server.created_at,
            role=membership.role,
            position=membership.position,
        )
        for server, membership in rows
    ]


@router.post("/", response_model=ServerResponse, status_code=status.HTTP_201_CREATED)
async def create_server(
    payload: ServerCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Server:
    """Create a new community."""
    return servers.create_server(db, payload.name, current_user.username, events=manager)


@router.put("/order", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_servers(
    payload: ServerOrder,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    servers.reorder_servers(db, current_user.username, payload.server_names)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{server_name}", response_model=ServerResponse)
async def get_server(server_name: str, _current_user: CurrentUserDep, db: SessionDep) -> Server:
    return servers.get_server(db, server_name)


@router.delete("/{server_name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(
    server_name: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Response:
    servers.delete_server(db, server_name, current_user.username, events=manager)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{server_name}/join", response_model=ServerResponse)
async def join_server(
    server_name: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Server:
    """Join a community. Joining one you already belong to is a no-op."""
    return servers.join_server(db, server_name, current_user.username, events=manager)


@router.post("/{server_name}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_server(
    server_name: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Response:
    servers.leave_server(db, server_name, current_user.username, events=manager)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{server_name}/members", response_model=list[MemberResponse])
async def list_members(
    server_name: str,
    _current_user: CurrentUserDep,
    db: SessionDep,
) -> list[MemberResponse]:
    return member_responses(servers.get_server_members(db, server_name))


@router.delete("/{server_name}/members/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    server_name: str,
    username: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Response:
    servers.remove_member(db, server_name, username, current_user.username, events=manager)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{server_name}/members/{username}/role")
async def update_member_role(
    server_name: str,
    username: str,
    payload: RoleUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> dict[str, str]:
    membership = servers.update_member_role(
        db, server_name, username, payload.role, current_user.username, events=manager
    )
    return {"username": membership.username, "role": membership.role}


@router.post("/{server_name}/transfer", response_model=ServerResponse)
async def transfer_ownership(
    server_name: str,
    payload: OwnershipTransfer,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Server:
    return servers.transfer_ownership(
        db, server_name, payload.new_owner, current_user.username, events=manager
    )


@router.get("/{server_name}/bans", response_model=list[ServerBanResponse])
async def list_bans(
    server_name: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> list[ServerBan]:
    return moderation.list_community_bans(db, server_name, current_user.username)


@router.post(
    "/{server_name}/bans",
    response_model=ServerBanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def ban_member(
    server_name: str,
    payload: CommunityBanRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> ServerBan:
    """Ban a user from this community."""
    return moderation.community_ban(
        db,
        server_name,
        payload.username,
        current_user.username,
        reason=payload.reason,
        events=manager,
    )


@router.delete("/{server_name}/bans/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def unban_member(
    server_name: str,
    username: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    moderation.lift_community_ban(db, server_name, username, current_user.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
