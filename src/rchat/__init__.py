"""RChat: multi-tenant chat service with live presence and moderation."""

__version__ = "0.1.0"
