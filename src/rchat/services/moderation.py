# src/rchat/services/moderation.py
"""Moderation services for RChat: site bans and community bans.

A site ban erases an identity: its ban-log row is written first, then every
record that references the identity is deleted in a fixed order, each step in
its own transaction. Every step matches usernames case-insensitively and can
be re-run safely, so a cascade that stopped half-way is repaired by running it
again with :func:`resume_site_ban`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlalchemy import ColumnElement, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rchat.core.errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    NotFoundError,
)
from rchat.core.settings import settings
from rchat.models import (
    BannedUsername,
    DirectConversation,
    FileAttachment,
    Message,
    Server,
    ServerBan,
    ServerMember,
    StoredFile,
    User,
)
from rchat.schemas.events import IdentityBanned, ServerMemberLeft
from rchat.services.fanout import EventPublisher, emit
from rchat.services.permissions import require_admin
from rchat.services.servers import get_server, is_default_server, refresh_server_counts

logger = logging.getLogger(__name__)

SITE_BAN_REASON = "Site ban"


# --- Site ban ---------------------------------------------------------------------------

def _find_user(db: Session, username: str) -> User | None:
    return db.query(User).filter(func.lower(User.username) == username.lower()).first()


def _find_ban_log(db: Session, username: str) -> BannedUsername | None:
    return (
        db.query(BannedUsername)
        .filter(func.lower(BannedUsername.username) == username.lower())
        .first()
    )


def _purge_attachments_for_messages(db: Session, message_filter: ColumnElement[bool]) -> None:
    message_ids = db.query(Message.id).filter(message_filter)
    db.query(FileAttachment).filter(FileAttachment.message_id.in_(message_ids)).delete(
        synchronize_session=False
    )


class SiteBanCascade:
    """The ordered deletion steps that erase one identity."""

    def __init__(self, db: Session, username: str, banned_by: str) -> None:
        self.db = db
        self.username = username
        self.banned_by = banned_by
        self._lowered = username.lower()

    @property
    def steps(self) -> list[tuple[str, Callable[[], None]]]:
        return [
            ("ban_log", self.record_ban),
            ("messages", self.delete_messages),
            ("memberships", self.delete_memberships),
            ("conversations", self.delete_conversations),
            ("files", self.delete_files),
            ("user", self.delete_user),
        ]

    def record_ban(self) -> None:
        if _find_ban_log(self.db, self.username) is None:
            self.db.add(
                BannedUsername(
                    username=self.username,
                    banned_by=self.banned_by,
                    reason=SITE_BAN_REASON,
                )
            )

    def delete_messages(self) -> None:
        sent_by_target = func.lower(Message.sender_username) == self._lowered
        _purge_attachments_for_messages(self.db, sent_by_target)
        self.db.query(Message).filter(sent_by_target).delete(synchronize_session=False)

    def delete_memberships(self) -> None:
        affected = [
            name
            for (name,) in self.db.query(ServerMember.server_name)
            .filter(func.lower(ServerMember.username) == self._lowered)
            .all()
        ]
        self.db.query(ServerMember).filter(
            func.lower(ServerMember.username) == self._lowered
        ).delete(synchronize_session=False)
        self.db.flush()
        for server in self.db.query(Server).filter(Server.name.in_(affected)).all():
            refresh_server_counts(self.db, server)

    def delete_conversations(self) -> None:
        involving = or_(
            func.lower(DirectConversation.username1) == self._lowered,
            func.lower(DirectConversation.username2) == self._lowered,
        )
        dm_ids = self.db.query(DirectConversation.id).filter(involving)
        in_conversation = Message.dm_id.in_(dm_ids)
        _purge_attachments_for_messages(self.db, in_conversation)
        self.db.query(Message).filter(in_conversation).delete(synchronize_session=False)
        self.db.query(DirectConversation).filter(involving).delete(synchronize_session=False)

    def delete_files(self) -> None:
        uploaded = func.lower(StoredFile.uploader_username) == self._lowered
        file_ids = self.db.query(StoredFile.id).filter(uploaded)
        self.db.query(FileAttachment).filter(FileAttachment.file_id.in_(file_ids)).delete(
            synchronize_session=False
        )
        self.db.query(StoredFile).filter(uploaded).delete(synchronize_session=False)

    def delete_user(self) -> None:
        self.db.query(User).filter(func.lower(User.username) == self._lowered).delete(
            synchronize_session=False
        )

    def run(self) -> None:
        """Run every step, committing after each one.

        Raises:
            InternalError: A step kept failing after ``SITE_BAN_MAX_ATTEMPTS``.
        """
        for name, step in self.steps:
            self._run_step(name, step)
        self.db.expire_all()

    def _run_step(self, name: str, step: Callable[[], None]) -> None:
        attempts = max(1, settings.site_ban_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                step()
                self.db.commit()
                logger.debug("Site ban of %s: step %s done", self.username, name)
                return
            except SQLAlchemyError as exc:
                self.db.rollback()
                if attempt >= attempts:
                    logger.exception(
                        "Site ban of %s failed at step %s after %d attempt(s)",
                        self.username,
                        name,
                        attempt,
                    )
                    raise InternalError(
                        f"Site ban of {self.username} failed at step {name}"
                    ) from exc
                logger.warning(
                    "Site ban of %s: step %s failed (attempt %d/%d): %s",
                    self.username,
                    name,
                    attempt,
                    attempts,
                    exc,
                )
                if settings.site_ban_retry_delay_seconds > 0:
                    time.sleep(settings.site_ban_retry_delay_seconds)


def site_ban(
    db: Session,
    target: str,
    requester: str,
    events: EventPublisher | None = None,
) -> str:
    """Ban ``target`` from the whole site and erase everything they left behind.

    The cascade runs synchronously, retry delays included, so async callers
    hand this to a worker thread.

    Returns:
        The banned username as stored.

    Raises:
        AuthorizationError: The requester is not a site admin.
        NotFoundError: No such user.
        BadRequestError: The requester tried to ban themselves.
        InternalError: A cascade step failed; re-run with :func:`resume_site_ban`.
    """
    require_admin(db, requester)
    user = _find_user(db, target)
    if user is None:
        raise NotFoundError("User not found")
    if user.username.lower() == requester.lower():
        raise BadRequestError("Cannot ban yourself")

    username = user.username
    logger.info("Site ban of %s requested by %s", username, requester)
    SiteBanCascade(db, username, requester).run()
    logger.info("Site ban of %s completed", username)
    emit(events, IdentityBanned(username=username))
    return username


def resume_site_ban(
    db: Session,
    target: str,
    requester: str,
    events: EventPublisher | None = None,
) -> str:
    """Re-run the cascade for an identity already on the ban log.

    Used to finish a cascade that stopped part-way; the user row need not exist.
    """
    require_admin(db, requester)
    entry = _find_ban_log(db, target)
    if entry is None:
        raise NotFoundError("User is not banned")

    username = entry.username
    logger.info("Resuming site ban of %s (requested by %s)", username, requester)
    SiteBanCascade(db, username, entry.banned_by).run()
    emit(events, IdentityBanned(username=username))
    return username


def list_site_bans(
    db: Session,
    requester: str,
    q: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[BannedUsername]:
    """Return ban-log entries, newest first, optionally filtered by substring."""
    require_admin(db, requester)
    query = db.query(BannedUsername)
    if q:
        query = query.filter(func.lower(BannedUsername.username).contains(q.lower()))
    return (
        query.order_by(BannedUsername.banned_at.desc())
        .offset(max(offset, 0))
        .limit(max(min(limit, 200), 1))
        .all()
    )


def lift_site_ban(db: Session, target: str, requester: str) -> None:
    """Remove ``target`` from the ban log so the name can be registered again."""
    require_admin(db, requester)
    entry = _find_ban_log(db, target)
    if entry is None:
        raise NotFoundError("User is not banned")
    db.delete(entry)
    db.commit()
    logger.info("Site ban of %s lifted by %s", target, requester)


# --- Community ban ----------------------------------------------------------------------

def community_ban(
    db: Session,
    server_name: str,
    target: str,
    requester: str,
    reason: str | None = None,
    events: EventPublisher | None = None,
) -> ServerBan:
    """Bar ``target`` from one community and drop their membership there."""
    if is_default_server(server_name):
        raise BadRequestError(f"Cannot ban users from {settings.default_server_name} server")
    server = get_server(db, server_name)
    if server.creator_username.lower() == target.lower():
        raise BadRequestError("Cannot ban server owner")
    require_admin(db, requester, server_name=server.name)

    existing = (
        db.query(ServerBan)
        .filter(
            ServerBan.server_name == server.name,
            func.lower(ServerBan.username) == target.lower(),
        )
        .first()
    )
    if existing is not None:
        raise ConflictError("User is already banned")

    ban = ServerBan(server_name=server.name, username=target, banned_by=requester, reason=reason)
    db.add(ban)
    db.query(ServerMember).filter(
        ServerMember.server_name == server.name,
        func.lower(ServerMember.username) == target.lower(),
    ).delete(synchronize_session=False)
    db.flush()
    stats = refresh_server_counts(db, server)
    db.commit()
    db.refresh(ban)

    logger.info("%s banned from %s by %s", target, server.name, requester)
    emit(events, ServerMemberLeft(server_name=server.name, username=target), stats)
    return ban


def lift_community_ban(db: Session, server_name: str, target: str, requester: str) -> None:
    server = get_server(db, server_name)
    require_admin(db, requester, server_name=server.name)
    ban = (
        db.query(ServerBan)
        .filter(
            ServerBan.server_name == server.name,
            func.lower(ServerBan.username) == target.lower(),
        )
        .first()
    )
    if ban is None:
        raise NotFoundError("User is not banned from this server")
    db.delete(ban)
    db.commit()
    logger.info("%s unbanned from %s by %s", target, server.name, requester)


def list_community_bans(db: Session, server_name: str, requester: str) -> list[ServerBan]:
    server = get_server(db, server_name)
    require_admin(db, requester, server_name=server.name)
    return (
        db.query(ServerBan)
        .filter(ServerBan.server_name == server.name)
        .order_by(ServerBan.banned_at.desc())
        .all()
    )
