# src/rchat/api/v1/endpoints/messages.py
"""Message endpoints for channels and direct conversations."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from rchat.models import User
from rchat.schemas.message import MessageCreate, MessageResponse
from rchat.services.messaging import (
    MessageTarget,
    delete_message,
    get_messages,
    message_deleted_event,
    new_message_event,
    send_message,
)

from ..dependencies import CurrentUserDep, ManagerDep, SessionDep

router = APIRouter(tags=["messages"])

LimitQuery = Annotated[int, Query(ge=1, le=200)]
OffsetQuery = Annotated[int, Query(ge=0)]


def _post(
    target: MessageTarget,
    target_id: str,
    payload: MessageCreate,
    user: User,
    db: SessionDep,
    manager: ManagerDep,
) -> MessageResponse:
    enriched = send_message(
        db,
        target,
        target_id,
        user.username,
        payload.content,
        content_type=payload.content_type,
        file_id=payload.file_id,
    )
    manager.publish(new_message_event(enriched))
    return MessageResponse(**enriched.to_dict())


def _delete(
    target: MessageTarget,
    target_id: str,
    message_id: str,
    user: User,
    db: SessionDep,
    manager: ManagerDep,
) -> dict[str, bool]:
    message = delete_message(db, target, target_id, message_id, user.username)
    manager.publish(message_deleted_event(message))
    return {"success": True}


@router.post(
    "/channels/{channel_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_channel_message(
    channel_id: str,
    payload: MessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> MessageResponse:
    """Post a message to a channel the caller's community owns."""
    return _post(MessageTarget.CHANNEL, channel_id, payload, current_user, db, manager)


@router.get("/channels/{channel_id}/messages", response_model=list[MessageResponse])
async def list_channel_messages(
    channel_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: LimitQuery = 50,
    offset: OffsetQuery = 0,
) -> list[MessageResponse]:
    messages = get_messages(
        db, MessageTarget.CHANNEL, channel_id, current_user.username, limit=limit, offset=offset
    )
    return [MessageResponse(**item.to_dict()) for item in messages]


@router.delete("/channels/{channel_id}/messages/{message_id}")
async def delete_channel_message(
    channel_id: str,
    message_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> dict[str, bool]:
    return _delete(MessageTarget.CHANNEL, channel_id, message_id, current_user, db, manager)


@router.post(
    "/conversations/{dm_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_conversation_message(
    dm_id: str,
    payload: MessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> MessageResponse:
    return _post(MessageTarget.DIRECT_MESSAGE, dm_id, payload, current_user, db, manager)


@router.get("/conversations/{dm_id}/messages", response_model=list[MessageResponse])
async def list_conversation_messages(
    dm_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: LimitQuery = 50,
    offset: OffsetQuery = 0,
) -> list[MessageResponse]:
    messages = get_messages(
        db, MessageTarget.DIRECT_MESSAGE, dm_id, current_user.username, limit=limit, offset=offset
    )
    return [MessageResponse(**item.to_dict()) for item in messages]


@router.delete("/conversations/{dm_id}/messages/{message_id}")
async def delete_conversation_message(
    dm_id: str,
    message_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> dict[str, bool]:
    return _delete(MessageTarget.DIRECT_MESSAGE, dm_id, message_id, current_user, db, manager)
