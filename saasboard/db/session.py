"""
Session factory and the request-scoped ``get_db`` dependency.

Streaming handlers outlive the request-scoped session, so they take the
factory itself (``get_session_factory()``) and open their own sessions.
"""

from collections.abc import Iterator

from sqlalchemy.orm import Session, sessionmaker

from saasboard.db.engine import get_engine

_session_factory: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    """Return the process-wide sessionmaker bound to the current engine."""
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


def reset_session_factory() -> None:
    """Forget the cached factory (after the engine has been disposed)."""
    global _session_factory
    _session_factory = None


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a session that is closed after the response."""
    with get_session_factory()() as session:
        yield session
