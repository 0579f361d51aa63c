# src/rchat/services/conversations.py
"""Direct conversations between two users."""

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from rchat.core.errors import BadRequestError, NotFoundError
from rchat.models import DirectConversation, User
from rchat.schemas.events import ConversationCreated
from rchat.services.fanout import EventPublisher, emit


def get_or_create_conversation(
    db: Session,
    requester: str,
    other: str,
    events: EventPublisher | None = None,
) -> DirectConversation:
    """Return the conversation between two users, creating it on first use."""
    peer = db.get(User, other)
    if peer is None:
        peer = db.query(User).filter(func.lower(User.username) == other.lower()).first()
    if peer is None:
        raise NotFoundError("User not found")
    if peer.username == requester:
        raise BadRequestError("Cannot start a conversation with yourself")

    first, second = DirectConversation.canonical_pair(requester, peer.username)
    existing = (
        db.query(DirectConversation)
        .filter(DirectConversation.username1 == first, DirectConversation.username2 == second)
        .first()
    )
    if existing is not None:
        return existing

    conversation = DirectConversation(username1=first, username2=second)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)

    emit(
        events,
        ConversationCreated(
            dm_id=conversation.id,
            username1=conversation.username1,
            username2=conversation.username2,
        ),
    )
    return conversation


def list_conversations(db: Session, username: str) -> list[DirectConversation]:
    """Return the user's active conversations, most recently used first."""
    return (
        db.query(DirectConversation)
        .filter(
            or_(DirectConversation.username1 == username, DirectConversation.username2 == username),
            DirectConversation.is_active.is_(True),
        )
        .order_by(
            DirectConversation.last_message_at.is_(None),
            DirectConversation.last_message_at.desc(),
            DirectConversation.created_at.desc(),
        )
        .all()
    )
