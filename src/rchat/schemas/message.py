# src/rchat/schemas/message.py
"""Message-related Pydantic schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    """Schema for posting a message to a channel or conversation."""

    content: str = Field(..., description="Message body, at most 4000 characters")
    content_type: Literal["text", "markdown", "file_attachment"] = "text"
    file_id: str | None = Field(None, description="Previously uploaded file to attach")


class MessageResponse(BaseModel):
    """A message with the sender's render data and its attachments."""

    id: str
    channel_id: str | None
    dm_id: str | None
    sender_username: str
    content: str
    filtered_content: str | None
    content_type: str
    filter_status: str
    created_at: str
    sender_profile_type: str | None = None
    sender_avatar_color: str | None = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
