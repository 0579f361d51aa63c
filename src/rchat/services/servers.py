# src/rchat/services/servers.py
"""Community ("server") lifecycle: create, join, leave, roles and counts."""

from __future__ import annotations

import logging
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session

from rchat.core.errors import (
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from rchat.core.security import hash_password
from rchat.core.settings import settings
from rchat.db.time import utcnow
from rchat.models import Channel, FileAttachment, Message, Server, ServerBan, ServerMember, User
from rchat.models.community import ROLE_ADMIN, ROLE_MEMBER, ROLES
from rchat.schemas.events import (
    ServerCreated,
    ServerDeleted,
    ServerMemberJoined,
    ServerMemberLeft,
    ServerMemberRoleUpdated,
    ServerStatsUpdated,
)
from rchat.services.fanout import EventPublisher, emit
from rchat.services.permissions import get_membership, is_site_admin, require_admin
from rchat.utils.validation import validate_server_name

logger = logging.getLogger(__name__)

INTERNAL_AVATAR_COLOR = "#808080"


def is_default_server(name: str) -> bool:
    return name.lower() == settings.default_server_name.lower()


def get_server(db: Session, name: str) -> Server:
    """Return the community called ``name`` (case-insensitive) or raise NotFound."""
    server = db.get(Server, name)
    if server is None:
        server = db.query(Server).filter(func.lower(Server.name) == name.lower()).first()
    if server is None:
        raise NotFoundError("Server not found")
    return server


def _member_in_server(db: Session, server: Server, username: str) -> ServerMember | None:
    return db.get(ServerMember, (server.name, username))


def _current_online_flag(db: Session, username: str) -> bool:
    """Inherit the identity's presence so a new membership is not shown offline."""
    online = (
        db.query(func.max(ServerMember.is_online))
        .filter(ServerMember.username == username)
        .scalar()
    )
    return bool(online)


def refresh_server_counts(db: Session, server: Server) -> ServerStatsUpdated:
    """Rewrite ``server``'s cached totals from its rows and describe the result."""
    server.member_count = (
        db.query(func.count(ServerMember.username))
        .filter(ServerMember.server_name == server.name)
        .scalar()
        or 0
    )
    server.channel_count = (
        db.query(func.count(Channel.id))
        .filter(Channel.server_name == server.name, Channel.is_active.is_(True))
        .scalar()
        or 0
    )
    return stats_event(server)


def stats_event(server: Server) -> ServerStatsUpdated:
    return ServerStatsUpdated(
        server_name=server.name,
        member_count=server.member_count,
        channel_count=server.channel_count,
    )


def recompute_counts(db: Session) -> int:
    """Set every community's member and channel counts from the rows themselves.

    Idempotent. Returns the number of communities rewritten.
    """
    servers = db.query(Server).all()
    for server in servers:
        refresh_server_counts(db, server)
    db.commit()
    logger.info("Server counts synced for %d servers", len(servers))
    return len(servers)


def create_server(
    db: Session,
    name: str,
    creator: str,
    events: EventPublisher | None = None,
) -> Server:
    """Create a community owned by ``creator`` with a default channel."""
    name = name.strip()
    validate_server_name(name)
    exists = db.query(Server).filter(func.lower(Server.name) == name.lower()).first()
    if exists is not None:
        raise ConflictError("Server name already exists")

    server = Server(name=name, creator_username=creator)
    db.add(server)
    db.flush()
    db.add(
        ServerMember(
            server_name=server.name,
            username=creator,
            role=ROLE_ADMIN,
            is_online=_current_online_flag(db, creator),
        )
    )
    db.add(Channel(server_name=server.name, name=settings.default_channel_name, position=0))
    db.flush()
    refresh_server_counts(db, server)
    db.commit()
    db.refresh(server)

    logger.info("Server %s created by %s", server.name, creator)
    emit(events, ServerCreated(server_name=server.name, owner_username=creator))
    return server


def join_server(
    db: Session,
    name: str,
    username: str,
    events: EventPublisher | None = None,
) -> Server:
    """Add ``username`` to the community. Joining twice is a no-op.

    Raises:
        NotFoundError: No such community.
        AuthorizationError: The user is banned from it.
    """
    server = get_server(db, name)
    banned = (
        db.query(ServerBan)
        .filter(
            ServerBan.server_name == server.name,
            func.lower(ServerBan.username) == username.lower(),
        )
        .first()
    )
    if banned is not None:
        raise AuthorizationError("You are banned from this server")

    if _member_in_server(db, server, username) is not None:
        return server

    db.add(
        ServerMember(
            server_name=server.name,
            username=username,
            role=ROLE_MEMBER,
            is_online=_current_online_flag(db, username),
        )
    )
    db.flush()
    stats = refresh_server_counts(db, server)
    db.commit()

    logger.info("%s joined server %s", username, server.name)
    emit(events, ServerMemberJoined(server_name=server.name, username=username), stats)
    return server


def remove_member(
    db: Session,
    name: str,
    username: str,
    requester: str,
    events: EventPublisher | None = None,
) -> None:
    """Remove ``username`` from the community; ``requester == username`` means leaving."""
    if is_default_server(name):
        raise BadRequestError(
            f"Cannot leave the {settings.default_server_name} server - "
            f"all users must remain in {settings.default_server_name}"
        )
    server = get_server(db, name)

    if username != requester:
        require_admin(db, requester, server_name=server.name)

    if server.creator_username == username:
        raise BadRequestError("Cannot remove server creator")

    membership = _member_in_server(db, server, username)
    if membership is None:
        raise NotFoundError("User is not a member of this server")

    db.delete(membership)
    db.flush()
    stats = refresh_server_counts(db, server)
    db.commit()

    logger.info("%s removed from server %s by %s", username, server.name, requester)
    emit(events, ServerMemberLeft(server_name=server.name, username=username), stats)


def leave_server(
    db: Session, name: str, username: str, events: EventPublisher | None = None
) -> None:
    remove_member(db, name, username, username, events=events)


def update_member_role(
    db: Session,
    name: str,
    username: str,
    new_role: str,
    requester: str,
    events: EventPublisher | None = None,
) -> ServerMember:
    """Set a member's role. The creator's role can only change via transfer."""
    if new_role not in ROLES:
        raise ValidationError("Invalid role")
    server = get_server(db, name)
    require_admin(db, requester, server_name=server.name)

    if server.creator_username == username:
        raise BadRequestError("Cannot modify creator role")

    membership = _member_in_server(db, server, username)
    if membership is None:
        raise NotFoundError("User is not a member of this server")

    membership.role = new_role
    db.commit()

    emit(
        events,
        ServerMemberRoleUpdated(server_name=server.name, username=username, new_role=new_role),
    )
    return membership


def transfer_ownership(
    db: Session,
    name: str,
    new_owner: str,
    requester: str,
    events: EventPublisher | None = None,
) -> Server:
    """Hand the community to another member, swapping admin and member roles."""
    server = get_server(db, name)
    if server.creator_username != requester:
        raise AuthorizationError("Only the server creator can transfer ownership")
    if new_owner == requester:
        raise BadRequestError("Cannot transfer ownership to yourself")

    incoming = _member_in_server(db, server, new_owner)
    if incoming is None:
        raise BadRequestError("New owner must be a member of the server")
    outgoing = _member_in_server(db, server, requester)

    server.creator_username = new_owner
    incoming.role = ROLE_ADMIN
    if outgoing is not None:
        outgoing.role = ROLE_MEMBER
    db.commit()

    logger.info("Ownership of %s transferred from %s to %s", server.name, requester, new_owner)
    emit(
        events,
        ServerMemberRoleUpdated(server_name=server.name, username=new_owner, new_role=ROLE_ADMIN),
        ServerMemberRoleUpdated(server_name=server.name, username=requester, new_role=ROLE_MEMBER),
    )
    return server


def delete_server(
    db: Session,
    name: str,
    requester: str,
    events: EventPublisher | None = None,
) -> None:
    """Delete a community and everything that hangs off it."""
    if is_default_server(name):
        raise BadRequestError(f"Cannot delete the {settings.default_server_name} server")
    server = get_server(db, name)
    if server.creator_username != requester and not is_site_admin(db, requester):
        raise AuthorizationError("Only server creator or site admin can delete server")

    server_name = server.name

    channel_ids = db.query(Channel.id).filter(Channel.server_name == server_name)
    message_ids = db.query(Message.id).filter(Message.channel_id.in_(channel_ids))
    db.query(FileAttachment).filter(FileAttachment.message_id.in_(message_ids)).delete(
        synchronize_session=False
    )
    db.query(Message).filter(Message.channel_id.in_(channel_ids)).delete(
        synchronize_session=False
    )
    db.query(Channel).filter(Channel.server_name == server_name).delete(synchronize_session=False)
    db.query(ServerMember).filter(ServerMember.server_name == server_name).delete(
        synchronize_session=False
    )
    db.query(ServerBan).filter(ServerBan.server_name == server_name).delete(
        synchronize_session=False
    )
    db.delete(server)
    db.commit()

    logger.info("Server %s deleted by %s", server_name, requester)
    emit(events, ServerDeleted(server_name=server_name))


def reorder_servers(db: Session, username: str, server_names: list[str]) -> None:
    """Store the caller's preferred ordering of their server list."""
    for index, server_name in enumerate(server_names):
        membership = get_membership(db, username, server_name)
        if membership is not None:
            membership.position = index
    db.commit()


def get_user_servers(db: Session, username: str) -> list[tuple[Server, ServerMember]]:
    """Return the caller's active communities with their membership, in list order."""
    return (
        db.query(Server, ServerMember)
        .join(ServerMember, ServerMember.server_name == Server.name)
        .filter(ServerMember.username == username, Server.is_active.is_(True))
        .order_by(ServerMember.position.asc(), Server.created_at.desc())
        .all()
    )


def get_server_members(db: Session, name: str) -> list[tuple[ServerMember, User]]:
    server = get_server(db, name)
    return (
        db.query(ServerMember, User)
        .join(User, User.username == ServerMember.username)
        .filter(ServerMember.server_name == server.name)
        .order_by(ServerMember.joined_at)
        .all()
    )


def list_all_servers(
    db: Session,
    requester: str,
    q: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Server], int]:
    """Return one page of active communities, newest first, and the matching total."""
    require_admin(db, requester)
    query = db.query(Server).filter(Server.is_active.is_(True))
    if q:
        query = query.filter(func.lower(Server.name).contains(q.lower()))
    total = query.count()
    page = (
        query.order_by(Server.created_at.desc(), Server.name)
        .offset(max(offset, 0))
        .limit(max(min(limit, 200), 1))
        .all()
    )
    return page, total


def _ensure_internal_user(db: Session, username: str, *, is_admin: bool, password: str | None) -> User:
    user = db.get(User, username)
    if user is None:
        user = User(
            username=username,
            password_hash=hash_password(password or secrets.token_urlsafe(32)),
            avatar_color=INTERNAL_AVATAR_COLOR,
            is_admin=is_admin,
        )
        db.add(user)
        db.flush()
        logger.info("Created %s user (admin: %s)", username, is_admin)
    elif is_admin and not user.is_admin:
        user.is_admin = True
    return user


def ensure_default_server(db: Session) -> tuple[Server, Channel]:
    """Make sure the system user, the default community and its channel exist.

    When ``ADMIN_USERNAME`` is configured that account is created as a site
    admin and joined to the default community. Safe to call on every start.
    """
    _ensure_internal_user(db, settings.system_username, is_admin=False, password=None)

    server = db.get(Server, settings.default_server_name)
    if server is None:
        server = Server(
            name=settings.default_server_name,
            creator_username=settings.system_username,
            created_at=utcnow(),
        )
        db.add(server)
        db.flush()
        logger.info("Created default server %s", server.name)

    channel = (
        db.query(Channel)
        .filter(
            Channel.server_name == server.name,
            Channel.name == settings.default_channel_name,
        )
        .first()
    )
    if channel is None:
        channel = Channel(server_name=server.name, name=settings.default_channel_name, position=0)
        db.add(channel)
        db.flush()

    if settings.admin_username:
        _ensure_internal_user(
            db, settings.admin_username, is_admin=True, password=settings.admin_password
        )
        if _member_in_server(db, server, settings.admin_username) is None:
            db.add(
                ServerMember(
                    server_name=server.name,
                    username=settings.admin_username,
                    role=ROLE_MEMBER,
                )
            )
            db.flush()

    refresh_server_counts(db, server)
    db.commit()
    return server, channel
