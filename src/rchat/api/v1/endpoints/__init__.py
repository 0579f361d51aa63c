# src/rchat/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .auth import router as auth_router
from .channels import router as channels_router
from .conversations import router as conversations_router
from .messages import router as messages_router
from .public import router as public_router
from .realtime import router as realtime_router
from .servers import router as servers_router

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
