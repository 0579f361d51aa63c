# src/rchat/schemas/__init__.py
"""
Pydantic schemas for API request/response models and live events.

These schemas define the structure of API data for serialization and validation.
"""

from .channel import ChannelCreate, ChannelRename, ChannelResponse
from .conversation import ConversationCreate, ConversationResponse
from .message import MessageCreate, MessageResponse
from .moderation import BannedUsernameResponse, CommunityBanRequest, SiteBanRequest
from .server import ServerCreate, ServerLookup, ServerPage, ServerResponse
from .user import LoginRequest, RegisterRequest, TokenResponse, UserPage, UserResponse

__all__ = [
    "ChannelCreate", "ChannelRename", "ChannelResponse",
    "ConversationCreate", "ConversationResponse",
    "MessageCreate", "MessageResponse",
    "BannedUsernameResponse", "CommunityBanRequest", "SiteBanRequest",
    "ServerCreate", "ServerLookup", "ServerPage", "ServerResponse",
    "LoginRequest", "RegisterRequest", "TokenResponse", "UserPage", "UserResponse",
]
