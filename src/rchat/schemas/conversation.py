# src/rchat/schemas/conversation.py
"""Direct conversation Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ConversationCreate(BaseModel):
    """Request to open (or fetch) the conversation with another user."""

    username: str


class ConversationResponse(BaseModel):
    id: str
    username1: str
    username2: str
    message_count: int
    is_active: bool
    created_at: datetime
    last_message_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
