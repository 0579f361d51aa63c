# src/rchat/models/community.py
"""SQLAlchemy models for communities ("servers"), their channels and members."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rchat.db.session import Base
from rchat.db.time import utcnow

ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"
ROLES = (ROLE_MEMBER, ROLE_ADMIN)


def _new_id() -> str:
    return str(uuid.uuid4())


class Server(Base):
    """A named community keyed by its display name.

    ``member_count`` and ``channel_count`` are a cache of derivable totals;
    ``recompute_counts`` in the server service is the source of truth.
    """

    __tablename__ = "servers"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    # No foreign key: a site-banned creator must not take the community with them.
    creator_username: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    channel_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ServerMember(Base):
    """Membership of one user in one community."""

    __tablename__ = "server_members"

    server_name: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("servers.name", ondelete="CASCADE"),
        primary_key=True,
    )
    username: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.username", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_MEMBER)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Per-user ordering of the server list.
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Channel(Base):
    """An ordered message space inside a community; soft-deleted via ``is_active``."""

    __tablename__ = "channels"
    __table_args__ = (UniqueConstraint("server_name", "name", name="uq_channels_server_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    server_name: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("servers.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ServerBan(Base):
    """A user barred from (re)joining one community."""

    __tablename__ = "server_bans"

    server_name: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("servers.name", ondelete="CASCADE"),
        primary_key=True,
    )
    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    banned_by: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
