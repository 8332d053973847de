"""
SQLAlchemy engine for SQLite or PostgreSQL, plus startup migrations.
"""

from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from saasboard.config import get_settings
from saasboard.core import get_logger

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

_engine: Engine | None = None


def _sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(database_url: str, echo: bool) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True, pool_size=5, max_overflow=10)

    if url.database and url.database != ":memory:":
        parent = Path(url.database).parent
        if not parent.exists():
            parent.mkdir(parents=True, exist_ok=True)
            logger.info("Created database directory", data={"path": str(parent)})

    engine = create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        # Sessions are opened from the streaming task as well as request threads
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _sqlite_pragmas)
    return engine


def get_engine() -> Engine:
    """Return the process-wide engine, creating it from settings on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = _build_engine(settings.database_url, settings.debug)
        logger.info(
            "Database engine created",
            data={"dialect": _engine.dialect.name, "debug": settings.debug},
        )
    return _engine


def verify_database_connection() -> bool:
    """True if a trivial query succeeds against the configured database."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Database connection failed", data={"error": str(exc)})
        return False
    return True


def run_migrations(engine: Engine | None = None) -> None:
    """
    Upgrade the schema to the latest alembic revision.

    Revisions already applied are skipped, so this runs on every startup.
    """
    from alembic import command
    from alembic.config import Config

    engine = engine or get_engine()
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
    logger.info("Database migrations applied", data={"dialect": engine.dialect.name})


def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine
    if _engine is None:
        return
    _engine.dispose()
    _engine = None
    logger.info("Database engine disposed")
