# src/rchat/schemas/moderation.py
"""Moderation-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SiteBanRequest(BaseModel):
    username: str


class CommunityBanRequest(BaseModel):
    """Ban ``username`` from a single community."""

    username: str
    reason: str | None = Field(None, max_length=500)


class BannedUsernameResponse(BaseModel):
    username: str
    banned_by: str
    reason: str | None
    banned_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ServerBanResponse(BaseModel):
    server_name: str
    username: str
    banned_by: str
    reason: str | None
    banned_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CountsRepairResponse(BaseModel):
    """Result of a count recompute: how many communities were rewritten."""

    servers_updated: int
