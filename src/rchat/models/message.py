# src/rchat/models/message.py
"""Models for channel and conversation messages."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rchat.db.session import Base
from rchat.db.time import utcnow

CONTENT_TYPE_TEXT = "text"
CONTENT_TYPE_MARKDOWN = "markdown"
CONTENT_TYPE_FILE_ATTACHMENT = "file_attachment"
CONTENT_TYPES = (CONTENT_TYPE_TEXT, CONTENT_TYPE_MARKDOWN, CONTENT_TYPE_FILE_ATTACHMENT)

FILTER_STATUS_CLEAN = "clean"
FILTER_STATUS_FILTERED = "filtered"


class Message(Base):
    """A message posted to exactly one channel or one direct conversation.

    Deletion is soft (``is_deleted``); the raw content stays for audit but
    every read path filters it out.
    """

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "(channel_id IS NOT NULL AND dm_id IS NULL) OR (channel_id IS NULL AND dm_id IS NOT NULL)",
            name="ck_messages_single_target",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    channel_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("channels.id", ondelete="CASCADE"), nullable=True, index=True
    )
    dm_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("direct_messages.id", ondelete="CASCADE"), nullable=True, index=True
    )
    sender_username: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    filtered_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False, default=CONTENT_TYPE_TEXT)
    filter_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=FILTER_STATUS_CLEAN
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
