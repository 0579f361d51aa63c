# src/rchat/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    admin_router,
    auth_router,
    channels_router,
    conversations_router,
    messages_router,
    public_router,
    realtime_router,
    servers_router,
)

__all__ = [
    "admin_router",
    "auth_router",
    "channels_router",
    "conversations_router",
    "messages_router",
    "public_router",
    "realtime_router",
    "servers_router",
]
