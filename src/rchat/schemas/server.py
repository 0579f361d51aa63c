# src/rchat/schemas/server.py
"""Community-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ServerCreate(BaseModel):
    """Schema for creating a new community."""

    name: str = Field(..., description="Display name, unique case-insensitively")


class ServerResponse(BaseModel):
    """Schema for community information returned by the API."""

    name: str
    creator_username: str
    is_active: bool
    member_count: int
    channel_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserServerResponse(ServerResponse):
    """A community as seen from one member's server list."""

    role: str
    position: int


class MemberResponse(BaseModel):
    """A membership row enriched with the member's avatar data."""

    username: str
    role: str
    is_online: bool
    joined_at: datetime
    last_seen: datetime
    profile_type: str | None = None
    avatar_color: str | None = None


class RoleUpdate(BaseModel):
    role: Literal["member", "admin"]


class OwnershipTransfer(BaseModel):
    new_owner: str


class ServerOrder(BaseModel):
    """Ordered list of community names for the caller's server list."""

    server_names: list[str]


class ServerLookup(BaseModel):
    server_name: str


class ServerPage(BaseModel):
    """One page of the site-wide community list."""

    servers: list[ServerResponse]
    total: int
