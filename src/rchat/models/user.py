# src/rchat/models/user.py
"""SQLAlchemy models for user identities and the site-ban log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rchat.db.session import Base
from rchat.db.time import as_utc, utcnow

PROFILE_TYPE_IDENTICON = "identicon"


class User(Base):
    """A registered identity keyed by username.

    Uniqueness is case-insensitive but enforced at validation time; the key
    itself keeps the casing the user registered with.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    profile_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PROFILE_TYPE_IDENTICON
    )
    avatar_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    account_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def is_locked(self) -> bool:
        """Return True while an account lock is in force."""
        if not self.account_locked:
            return False
        if self.lock_until is None:
            return True
        return as_utc(self.lock_until) > utcnow()


class BannedUsername(Base):
    """Append-only site-ban log; a listed username can never register again."""

    __tablename__ = "banned_usernames"

    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    banned_by: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
