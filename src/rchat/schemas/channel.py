# src/rchat/schemas/channel.py
"""Channel-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ChannelCreate(BaseModel):
    name: str


class ChannelRename(BaseModel):
    name: str


class ChannelResponse(BaseModel):
    """Schema for channel information returned by the API."""

    id: str
    server_name: str
    name: str
    position: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
