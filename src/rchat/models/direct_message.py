# src/rchat/models/direct_message.py
"""Models describing direct conversations between two users."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rchat.db.session import Base
from rchat.db.time import utcnow


class DirectConversation(Base):
    """A private thread between two users.

    The pair is stored in canonical order (``username1 <= username2``) so that
    a request for ``(a, b)`` and one for ``(b, a)`` land on the same row.
    """

    __tablename__ = "direct_messages"
    __table_args__ = (UniqueConstraint("username1", "username2", name="uq_direct_messages_users"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username1: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False, index=True
    )
    username2: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.username", ondelete="CASCADE"), nullable=False, index=True
    )
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def has_participant(self, username: str) -> bool:
        return username in (self.username1, self.username2)

    @staticmethod
    def canonical_pair(first: str, second: str) -> tuple[str, str]:
        """Return the pair ordered as it is stored."""
        return (first, second) if first <= second else (second, first)
