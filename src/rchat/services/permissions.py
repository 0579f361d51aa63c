# src/rchat/services/permissions.py
"""Effective-role resolution: site admin > community admin > member."""

from __future__ import annotations

from sqlalchemy.orm import Session

from rchat.core.errors import InsufficientRoleError, NotFoundError, NotMemberError
from rchat.models import Channel, ServerMember, User
from rchat.models.community import ROLE_ADMIN

ROLE_SITE_ADMIN = "site_admin"


def is_site_admin(db: Session, username: str) -> bool:
    """Return True if ``username`` exists and carries the site-admin flag."""
    user = db.get(User, username)
    return bool(user and user.is_admin)


def get_membership(db: Session, username: str, server_name: str) -> ServerMember | None:
    return db.get(ServerMember, (server_name, username))


def channel_server_name(db: Session, channel_id: str) -> str:
    """Return the name of the community that owns ``channel_id``."""
    channel = db.get(Channel, channel_id)
    if channel is None:
        raise NotFoundError("Channel not found")
    return channel.server_name


def resolve_role(db: Session, username: str, server_name: str) -> str | None:
    """Return the caller's effective role in ``server_name``.

    ``"site_admin"`` wins over any membership; ``None`` means neither a site
    admin nor a member.
    """
    if is_site_admin(db, username):
        return ROLE_SITE_ADMIN
    membership = get_membership(db, username, server_name)
    return membership.role if membership else None


def require_admin(
    db: Session,
    username: str,
    server_name: str | None = None,
    channel_id: str | None = None,
) -> None:
    """Ensure ``username`` may administer the given scope.

    A site admin passes any scope. Otherwise the caller needs the ``admin``
    role in the named community, or in the community that owns ``channel_id``.

    Raises:
        NotMemberError: The caller has no membership in the scoped community.
        InsufficientRoleError: The caller is a plain member, or no scope was
            given and the caller is not a site admin.
        NotFoundError: ``channel_id`` does not exist.
    """
    if is_site_admin(db, username):
        return

    if server_name is None and channel_id is None:
        raise InsufficientRoleError("Site admin privileges required")

    scope = server_name if server_name is not None else channel_server_name(db, channel_id or "")
    membership = get_membership(db, username, scope)
    if membership is None:
        raise NotMemberError("You are not a member of this server")
    if membership.role != ROLE_ADMIN:
        label = "Server" if server_name is not None else "Channel"
        raise InsufficientRoleError(f"{label} admin privileges required")
