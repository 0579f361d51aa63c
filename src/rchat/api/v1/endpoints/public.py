# src/rchat/api/v1/endpoints/public.py
"""Read-only endpoints that need no account, for guests browsing communities."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from rchat.core.errors import NotFoundError
from rchat.models import Channel, Server
from rchat.schemas.channel import ChannelResponse
from rchat.schemas.message import MessageResponse
from rchat.schemas.server import MemberResponse, ServerLookup, ServerResponse
from rchat.services import channels, servers
from rchat.services.messaging import get_public_channel_messages

from ..dependencies import SessionDep
from .servers import member_responses

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/servers/lookup", response_model=ServerResponse)
async def lookup_server(payload: ServerLookup, db: SessionDep) -> Server:
    """Find an active community by name, ignoring case."""
    server = servers.get_server(db, payload.server_name)
    if not server.is_active:
        raise NotFoundError("Server not found")
    return server


@router.get("/servers/{server_name}/channels", response_model=list[ChannelResponse])
async def list_channels(server_name: str, db: SessionDep) -> list[Channel]:
    return channels.list_channels(db, server_name)


@router.get("/servers/{server_name}/members", response_model=list[MemberResponse])
async def list_members(server_name: str, db: SessionDep) -> list[MemberResponse]:
    return member_responses(servers.get_server_members(db, server_name))


@router.get("/channels/{channel_id}/messages", response_model=list[MessageResponse])
async def list_channel_messages(
    channel_id: str,
    db: SessionDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[MessageResponse]:
    messages = get_public_channel_messages(db, channel_id, limit=limit, offset=offset)
    return [MessageResponse(**item.to_dict()) for item in messages]
