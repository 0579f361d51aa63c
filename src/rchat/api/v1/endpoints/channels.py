# src/rchat/api/v1/endpoints/channels.py
"""Channel endpoints, nested under their community."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from rchat.models import Channel
from rchat.schemas.channel import ChannelCreate, ChannelRename, ChannelResponse
from rchat.services import channels

from ..dependencies import CurrentUserDep, ManagerDep, SessionDep

router = APIRouter(prefix="/servers/{server_name}/channels", tags=["channels"])


@router.get("/", response_model=list[ChannelResponse])
async def list_channels(
    server_name: str,
    _current_user: CurrentUserDep,
    db: SessionDep,
) -> list[Channel]:
    return channels.list_channels(db, server_name)


@router.post("/", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(
    server_name: str,
    payload: ChannelCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Channel:
    return channels.create_channel(
        db, server_name, payload.name, current_user.username, events=manager
    )


@router.patch("/{channel_id}", response_model=ChannelResponse)
async def rename_channel(
    server_name: str,
    channel_id: str,
    payload: ChannelRename,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Channel:
    return channels.rename_channel(
        db, server_name, channel_id, payload.name, current_user.username, events=manager
    )


@router.delete("/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_channel(
    server_name: str,
    channel_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> Response:
    channels.delete_channel(db, server_name, channel_id, current_user.username, events=manager)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
