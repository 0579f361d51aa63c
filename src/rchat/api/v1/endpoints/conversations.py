# src/rchat/api/v1/endpoints/conversations.py
"""Direct conversation endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from rchat.models import DirectConversation
from rchat.schemas.conversation import ConversationCreate, ConversationResponse
from rchat.services import conversations

from ..dependencies import CurrentUserDep, ManagerDep, SessionDep

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/", response_model=list[ConversationResponse])
async def list_conversations(current_user: CurrentUserDep, db: SessionDep) -> list[DirectConversation]:
    return conversations.list_conversations(db, current_user.username)


@router.post("/", response_model=ConversationResponse)
async def open_conversation(
    payload: ConversationCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    manager: ManagerDep,
) -> DirectConversation:
    """Return the conversation with another user, creating it if needed."""
    return conversations.get_or_create_conversation(
        db, current_user.username, payload.username, events=manager
    )
