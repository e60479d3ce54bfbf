"""SQLAlchemy engine factory and session management.

Creates the engine from SMARTMATCH_DATABASE_URL. SQLite connections get
foreign keys and a busy timeout on every connect; file-backed SQLite
databases also switch to WAL mode.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from smartmatch.config import get_settings


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine for the configured database.

    - Creates the parent directory of a file-backed SQLite database
    - Event listener sets WAL mode, foreign keys, and busy timeout on each
      SQLite connection
    """
    settings = get_settings()
    url = database_url or settings.database_url
    is_sqlite = url.startswith("sqlite")
    is_memory = url in ("sqlite://", "sqlite:///:memory:")

    if is_sqlite and not is_memory:
        db_path = url.split("///", 1)[-1]
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        url,
        pool_pre_ping=True,
        echo=settings.debug,
    )

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def set_sqlite_pragmas(dbapi_connection, connection_record):
            """Set SQLite PRAGMAs on every new connection."""
            cursor = dbapi_connection.cursor()
            if not is_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


# Module-level singleton engine
engine = create_db_engine()

# Session factory bound to the engine
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """Context manager yielding a database session.

    Usage:
        with get_db() as db:
            models = db.query(IndustryModel).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
