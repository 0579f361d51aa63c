# src/rchat/api/__init__.py
"""HTTP and WebSocket surface of the RChat service."""
