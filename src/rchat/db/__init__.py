# src/rchat/db/__init__.py
"""Engine, sessions and schema bootstrap for the chat store."""

from .session import Base, SessionLocal, create_tables, get_db
from .time import as_utc, utcnow

__all__ = ["Base", "SessionLocal", "as_utc", "create_tables", "get_db", "utcnow"]
