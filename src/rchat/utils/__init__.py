# src/rchat/utils/__init__.py
"""Small helpers shared across services."""
