# src/rchat/schemas/events.py
"""Outbound live-stream events.

Every event is a pydantic model tagged by a snake_case ``type`` field; the
:data:`ServerEvent` union is closed so subscribers can dispatch on ``type``.
Clients filter on ``server_name``, ``channel_id`` and ``dm_id`` themselves.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class Connected(_Event):
    type: Literal["connected"] = "connected"
    username: str


class PresenceChanged(_Event):
    type: Literal["user_online_status_changed"] = "user_online_status_changed"
    server_name: str
    username: str
    is_online: bool


class NewMessage(_Event):
    type: Literal["new_message"] = "new_message"
    message_id: str
    channel_id: str
    sender_username: str
    content: str
    filtered_content: str | None = None
    content_type: str
    filter_status: str
    created_at: str
    sender_profile_type: str | None = None
    sender_avatar_color: str | None = None
    attachments: list[dict[str, Any]] | None = None


class NewConversationMessage(_Event):
    type: Literal["new_dm_message"] = "new_dm_message"
    message_id: str
    dm_id: str
    sender_username: str
    content: str
    filtered_content: str | None = None
    content_type: str
    filter_status: str
    created_at: str
    sender_profile_type: str | None = None
    sender_avatar_color: str | None = None
    attachments: list[dict[str, Any]] | None = None


class MessageDeleted(_Event):
    type: Literal["message_deleted"] = "message_deleted"
    message_id: str
    channel_id: str | None = None
    dm_id: str | None = None


class IdentityBanned(_Event):
    type: Literal["user_banned"] = "user_banned"
    username: str


class ServerCreated(_Event):
    type: Literal["server_created"] = "server_created"
    server_name: str
    owner_username: str


class ServerDeleted(_Event):
    type: Literal["server_deleted"] = "server_deleted"
    server_name: str


class ServerMemberJoined(_Event):
    type: Literal["server_member_joined"] = "server_member_joined"
    server_name: str
    username: str


class ServerMemberLeft(_Event):
    type: Literal["server_member_left"] = "server_member_left"
    server_name: str
    username: str


class ServerMemberRoleUpdated(_Event):
    type: Literal["server_member_role_updated"] = "server_member_role_updated"
    server_name: str
    username: str
    new_role: str


class ChannelCreated(_Event):
    type: Literal["channel_created"] = "channel_created"
    server_name: str
    channel_id: str
    channel_name: str


class ChannelDeleted(_Event):
    type: Literal["channel_deleted"] = "channel_deleted"
    server_name: str
    channel_id: str


class ChannelRenamed(_Event):
    type: Literal["channel_renamed"] = "channel_renamed"
    server_name: str
    channel_id: str
    new_name: str


class ConversationCreated(_Event):
    type: Literal["dm_created"] = "dm_created"
    dm_id: str
    username1: str
    username2: str


class ServerStatsUpdated(_Event):
    type: Literal["server_stats_updated"] = "server_stats_updated"
    server_name: str
    member_count: int
    channel_count: int


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str


class Pong(_Event):
    type: Literal["pong"] = "pong"


ServerEvent = Annotated[
    Union[
        Connected,
        PresenceChanged,
        NewMessage,
        NewConversationMessage,
        MessageDeleted,
        IdentityBanned,
        ServerCreated,
        ServerDeleted,
        ServerMemberJoined,
        ServerMemberLeft,
        ServerMemberRoleUpdated,
        ChannelCreated,
        ChannelDeleted,
        ChannelRenamed,
        ConversationCreated,
        ServerStatsUpdated,
        ErrorEvent,
        Pong,
    ],
    Field(discriminator="type"),
]

server_event_adapter: TypeAdapter[ServerEvent] = TypeAdapter(ServerEvent)


class ClientFrame(BaseModel):
    """Inbound frame sent by a client over the live socket."""

    model_config = ConfigDict(extra="ignore")

    type: str


def parse_event(raw: str | bytes) -> ServerEvent:
    """Parse a serialized event back into its model."""
    return server_event_adapter.validate_json(raw)
