# src/rchat/services/channels.py
"""Channel create, list, rename and (soft) delete."""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from rchat.core.errors import BadRequestError, ConflictError, NotFoundError
from rchat.models import Channel
from rchat.schemas.events import ChannelCreated, ChannelDeleted, ChannelRenamed
from rchat.services.fanout import EventPublisher, emit
from rchat.services.permissions import require_admin
from rchat.services.servers import get_server, refresh_server_counts
from rchat.utils.validation import validate_channel_name

logger = logging.getLogger(__name__)


def _name_taken(
    db: Session,
    server_name: str,
    name: str,
    *,
    exclude: str | None = None,
    include_inactive: bool = False,
) -> bool:
    query = db.query(Channel).filter(
        Channel.server_name == server_name,
        func.lower(Channel.name) == name.lower(),
    )
    if not include_inactive:
        query = query.filter(Channel.is_active.is_(True))
    if exclude is not None:
        query = query.filter(Channel.id != exclude)
    return query.first() is not None


def list_channels(db: Session, server_name: str) -> list[Channel]:
    """Return the community's active channels in display order."""
    server = get_server(db, server_name)
    return (
        db.query(Channel)
        .filter(Channel.server_name == server.name, Channel.is_active.is_(True))
        .order_by(Channel.position.asc())
        .all()
    )


def create_channel(
    db: Session,
    server_name: str,
    name: str,
    requester: str,
    events: EventPublisher | None = None,
) -> Channel:
    """Append a channel to the community. Requires admin."""
    name = name.strip()
    validate_channel_name(name)
    server = get_server(db, server_name)
    require_admin(db, requester, server_name=server.name)
    if _name_taken(db, server.name, name):
        raise ConflictError("Channel name already exists")

    # A soft-deleted channel keeps its row; reuse it rather than colliding.
    dormant = (
        db.query(Channel)
        .filter(Channel.server_name == server.name, Channel.name == name)
        .first()
    )
    max_position = (
        db.query(func.max(Channel.position)).filter(Channel.server_name == server.name).scalar()
    )
    next_position = (max_position if max_position is not None else -1) + 1
    if dormant is not None:
        dormant.is_active = True
        dormant.position = next_position
        channel = dormant
    else:
        channel = Channel(server_name=server.name, name=name, position=next_position)
        db.add(channel)
    db.flush()
    stats = refresh_server_counts(db, server)
    db.commit()
    db.refresh(channel)

    logger.info("Channel %s created in %s by %s", channel.name, server.name, requester)
    emit(
        events,
        ChannelCreated(server_name=server.name, channel_id=channel.id, channel_name=channel.name),
        stats,
    )
    return channel


def _load_channel_in(db: Session, server_name: str, channel_id: str) -> Channel:
    channel = db.get(Channel, channel_id)
    if channel is None or not channel.is_active or channel.server_name != server_name:
        raise NotFoundError("Channel not found")
    return channel


def rename_channel(
    db: Session,
    server_name: str,
    channel_id: str,
    new_name: str,
    requester: str,
    events: EventPublisher | None = None,
) -> Channel:
    new_name = new_name.strip()
    validate_channel_name(new_name)
    server = get_server(db, server_name)
    require_admin(db, requester, server_name=server.name)
    channel = _load_channel_in(db, server.name, channel_id)
    if _name_taken(db, server.name, new_name, exclude=channel.id, include_inactive=True):
        raise ConflictError("Channel name already exists")

    channel.name = new_name
    db.commit()
    db.refresh(channel)

    emit(
        events,
        ChannelRenamed(server_name=server.name, channel_id=channel.id, new_name=channel.name),
    )
    return channel


def delete_channel(
    db: Session,
    server_name: str,
    channel_id: str,
    requester: str,
    events: EventPublisher | None = None,
) -> Channel:
    """Soft-delete a channel. A community always keeps one active channel."""
    server = get_server(db, server_name)
    require_admin(db, requester, server_name=server.name)
    channel = _load_channel_in(db, server.name, channel_id)

    active = (
        db.query(func.count(Channel.id))
        .filter(Channel.server_name == server.name, Channel.is_active.is_(True))
        .scalar()
        or 0
    )
    if active <= 1:
        raise BadRequestError("Cannot delete the last channel")

    channel.is_active = False
    db.flush()
    stats = refresh_server_counts(db, server)
    db.commit()

    logger.info("Channel %s deleted from %s by %s", channel.id, server.name, requester)
    emit(events, ChannelDeleted(server_name=server.name, channel_id=channel.id), stats)
    return channel
