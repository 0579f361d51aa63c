# src/rchat/services/messaging.py
"""Message send, read and delete for channels and direct conversations."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from rchat.core.errors import (
    AuthorizationError,
    BadRequestError,
    NotFoundError,
    NotMemberError,
    ValidationError,
)
from rchat.db.time import as_utc, utcnow
from rchat.models import (
    Channel,
    DirectConversation,
    FileAttachment,
    Message,
    StoredFile,
    User,
)
from rchat.models.community import ROLE_ADMIN
from rchat.models.message import CONTENT_TYPES, FILTER_STATUS_CLEAN, FILTER_STATUS_FILTERED
from rchat.schemas.events import MessageDeleted, NewConversationMessage, NewMessage
from rchat.services.permissions import get_membership, is_site_admin
from rchat.services.profanity import filter_profanity
from rchat.utils.validation import validate_message_content

logger = logging.getLogger(__name__)


class MessageTarget(str, enum.Enum):
    """Where a message lives."""

    CHANNEL = "channel"
    DIRECT_MESSAGE = "direct_message"


@dataclass
class EnrichedMessage:
    """A persisted message plus the sender and attachment data clients render."""

    message: Message
    sender_profile_type: str | None = None
    sender_avatar_color: str | None = None
    attachments: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        message = self.message
        return {
            "id": message.id,
            "channel_id": message.channel_id,
            "dm_id": message.dm_id,
            "sender_username": message.sender_username,
            "content": message.content,
            "filtered_content": message.filtered_content,
            "content_type": message.content_type,
            "filter_status": message.filter_status,
            "created_at": as_utc(message.created_at).isoformat(),
            "sender_profile_type": self.sender_profile_type,
            "sender_avatar_color": self.sender_avatar_color,
            "attachments": list(self.attachments),
        }


def _load_channel(db: Session, channel_id: str) -> Channel:
    channel = db.get(Channel, channel_id)
    if channel is None or not channel.is_active:
        raise NotFoundError("Channel not found")
    return channel


def _load_conversation(db: Session, dm_id: str) -> DirectConversation:
    conversation = db.get(DirectConversation, dm_id)
    if conversation is None:
        raise NotFoundError("Direct message conversation not found")
    return conversation


def _authorize_target(db: Session, target: MessageTarget, target_id: str, username: str) -> None:
    """Ensure ``username`` may post to and read from the target."""
    if target is MessageTarget.CHANNEL:
        channel = _load_channel(db, target_id)
        if get_membership(db, username, channel.server_name) is None:
            raise NotMemberError("You must be a member of the server to send messages")
    else:
        conversation = _load_conversation(db, target_id)
        if not conversation.has_participant(username):
            raise AuthorizationError("You are not part of this conversation")


def _attachments_for(db: Session, message_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
    if not message_ids:
        return {}
    rows = (
        db.query(FileAttachment, StoredFile)
        .join(StoredFile, StoredFile.id == FileAttachment.file_id)
        .filter(FileAttachment.message_id.in_(message_ids), StoredFile.is_deleted.is_(False))
        .order_by(FileAttachment.position)
        .all()
    )
    grouped: dict[str, list[dict[str, Any]]] = {}
    for link, stored in rows:
        grouped.setdefault(link.message_id, []).append(
            {
                "file_id": stored.id,
                "original_name": stored.original_name,
                "content_type": stored.content_type,
                "size": stored.size,
            }
        )
    return grouped


def _enrich(db: Session, messages: list[Message]) -> list[EnrichedMessage]:
    senders = {m.sender_username for m in messages}
    profiles = {
        user.username: user
        for user in db.query(User).filter(User.username.in_(senders)).all()
    } if senders else {}
    attachments = _attachments_for(db, [m.id for m in messages])
    enriched: list[EnrichedMessage] = []
    for message in messages:
        sender = profiles.get(message.sender_username)
        enriched.append(
            EnrichedMessage(
                message=message,
                sender_profile_type=sender.profile_type if sender else None,
                sender_avatar_color=sender.avatar_color if sender else None,
                attachments=attachments.get(message.id, []),
            )
        )
    return enriched


def send_message(
    db: Session,
    target: MessageTarget,
    target_id: str,
    sender: str,
    content: str,
    content_type: str = "text",
    file_id: str | None = None,
) -> EnrichedMessage:
    """Validate, censor and persist a message, returning it with render data.

    Channel messages run through the profanity filter; a flagged message keeps
    its raw ``content`` and gets a censored ``filtered_content`` copy.
    Conversation messages are stored as-is.

    Raises:
        ValidationError: Empty or oversized content, or unknown content type.
        NotFoundError: The target (or the attached file) does not exist.
        AuthorizationError: The sender may not post to the target.
    """
    validate_message_content(content)
    if content_type not in CONTENT_TYPES:
        raise ValidationError(f"Unsupported content type: {content_type}")
    _authorize_target(db, target, target_id, sender)

    if file_id is not None:
        stored = db.get(StoredFile, file_id)
        if stored is None or stored.is_deleted:
            raise NotFoundError("File not found")

    now = utcnow()
    message = Message(
        sender_username=sender,
        content=content,
        content_type=content_type,
        filter_status=FILTER_STATUS_CLEAN,
        created_at=now,
    )
    if target is MessageTarget.CHANNEL:
        message.channel_id = target_id
        censored, flagged = filter_profanity(content)
        if flagged:
            message.filter_status = FILTER_STATUS_FILTERED
            message.filtered_content = censored
    else:
        message.dm_id = target_id
        conversation = db.get(DirectConversation, target_id)
        if conversation is not None:
            conversation.last_message_at = now
            conversation.message_count = (conversation.message_count or 0) + 1

    db.add(message)
    db.flush()
    if file_id is not None:
        db.add(FileAttachment(file_id=file_id, message_id=message.id, position=0))
    db.commit()
    db.refresh(message)

    return _enrich(db, [message])[0]


def _page(
    db: Session, column: Any, target_id: str, limit: int, offset: int
) -> list[EnrichedMessage]:
    messages = (
        db.query(Message)
        .filter(column == target_id, Message.is_deleted.is_(False))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset(max(offset, 0))
        .limit(max(min(limit, 200), 1))
        .all()
    )
    return _enrich(db, messages)


def get_messages(
    db: Session,
    target: MessageTarget,
    target_id: str,
    requester: str,
    limit: int = 50,
    offset: int = 0,
) -> list[EnrichedMessage]:
    """Return non-deleted messages for the target, newest first."""
    _authorize_target(db, target, target_id, requester)
    column = Message.channel_id if target is MessageTarget.CHANNEL else Message.dm_id
    return _page(db, column, target_id, limit, offset)


def get_public_channel_messages(
    db: Session, channel_id: str, limit: int = 50, offset: int = 0
) -> list[EnrichedMessage]:
    """Read a channel without membership; used by guests. Conversations are never public."""
    _load_channel(db, channel_id)
    return _page(db, Message.channel_id, channel_id, limit, offset)


def delete_message(
    db: Session,
    target: MessageTarget,
    target_id: str,
    message_id: str,
    requester: str,
) -> Message:
    """Soft-delete a message.

    The sender may always delete; a site admin may delete anywhere; a
    community admin may delete channel messages in their community only.
    """
    message = db.get(Message, message_id)
    if message is None:
        raise NotFoundError("Message not found")

    if target is MessageTarget.CHANNEL and message.channel_id != target_id:
        raise BadRequestError("Message does not belong to this channel")
    if target is MessageTarget.DIRECT_MESSAGE and message.dm_id != target_id:
        raise BadRequestError("Message does not belong to this DM")

    if not _may_delete(db, target, target_id, message, requester):
        raise AuthorizationError("You do not have permission to delete this message")

    message.is_deleted = True
    db.commit()
    logger.info("Message %s deleted by %s", message_id, requester)
    return message


def _may_delete(
    db: Session, target: MessageTarget, target_id: str, message: Message, requester: str
) -> bool:
    if message.sender_username == requester:
        return True
    if is_site_admin(db, requester):
        return True
    if target is MessageTarget.CHANNEL:
        channel = db.get(Channel, target_id)
        if channel is None:
            raise NotFoundError("Channel not found")
        membership = get_membership(db, requester, channel.server_name)
        return membership is not None and membership.role == ROLE_ADMIN
    return False


def new_message_event(enriched: EnrichedMessage) -> NewMessage | NewConversationMessage:
    """Build the live event announcing ``enriched``."""
    data = enriched.to_dict()
    common = {
        "message_id": data["id"],
        "sender_username": data["sender_username"],
        "content": data["content"],
        "filtered_content": data["filtered_content"],
        "content_type": data["content_type"],
        "filter_status": data["filter_status"],
        "created_at": data["created_at"],
        "sender_profile_type": data["sender_profile_type"],
        "sender_avatar_color": data["sender_avatar_color"],
        "attachments": data["attachments"] or None,
    }
    if enriched.message.channel_id is not None:
        return NewMessage(channel_id=enriched.message.channel_id, **common)
    return NewConversationMessage(dm_id=enriched.message.dm_id or "", **common)


def message_deleted_event(message: Message) -> MessageDeleted:
    return MessageDeleted(
        message_id=message.id,
        channel_id=message.channel_id,
        dm_id=message.dm_id,
    )
