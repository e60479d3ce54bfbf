"""Database layer: engine, base models, session management."""

from smartmatch.db.base import AppendOnlyMixin, Base, TimestampMixin
from smartmatch.db.engine import SessionLocal, create_db_engine, get_db

__all__ = [
    "AppendOnlyMixin",
    "Base",
    "TimestampMixin",
    "create_db_engine",
    "SessionLocal",
    "get_db",
]
