# src/rchat/models/__init__.py
"""SQLAlchemy models for the RChat application."""

from .community import Channel, Server, ServerBan, ServerMember
from .direct_message import DirectConversation
from .file import FileAttachment, StoredFile
from .message import Message
from .user import BannedUsername, User

__all__ = [
    "Channel", "Server", "ServerBan", "ServerMember",
    "DirectConversation",
    "FileAttachment", "StoredFile",
    "Message",
    "BannedUsername", "User",
]
