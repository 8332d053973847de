"""Database models, engine, and session management."""

from saasboard.db.base import Base, TimestampMixin
from saasboard.db.engine import (
    dispose_engine,
    get_engine,
    run_migrations,
    verify_database_connection,
)
from saasboard.db.models import Conversation, Message, User
from saasboard.db.session import get_db, get_session_factory, reset_session_factory

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Engine
    "get_engine",
    "verify_database_connection",
    "run_migrations",
    "dispose_engine",
    # Session
    "get_db",
    "get_session_factory",
    "reset_session_factory",
    # Models
    "Conversation",
    "Message",
    "User",
]
