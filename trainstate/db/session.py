from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from trainstate.config.settings import settings
from trainstate.db.models import Base, Workout, WorkoutCategory, WorkoutSubcategory

# Lazy initialization so importing the package never touches the filesystem
_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """Enable foreign key constraints in SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    SQLite engines get ``check_same_thread=False`` because store work is run
    in worker threads, and foreign keys are switched on per connection.
    """
    connect_args = {}
    engine_kwargs = {}
    is_sqlite = database_url.lower().startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False}
        db_file = database_url.split("://", 1)[-1].lstrip("/")
        if not db_file or db_file == ":memory:":
            # One shared connection, otherwise every thread sees its own empty database
            engine_kwargs["poolclass"] = StaticPool
        else:
            Path(database_url.split("///", 1)[-1]).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, connect_args=connect_args, echo=False, **engine_kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _get_engine() -> Engine:
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        logger.info(f"Initializing database engine: {settings.database_url}")
        _engine = create_db_engine(settings.database_url)
    return _engine


def _get_session_local() -> sessionmaker[Session]:
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=_get_engine(), autoflush=False, expire_on_commit=False)
        logger.debug("Database session factory initialized")
    return _SessionLocal


def init_db(engine: Engine | None = None) -> None:
    """Create all tables. Safe to call multiple times."""
    Base.metadata.create_all(bind=engine or _get_engine())
    logger.info("Database schema ready")


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get database session context manager.

    Commits when the block exits cleanly, rolls back and re-raises otherwise.
    Code that manages its own transaction boundaries (restore, import)
    commits explicitly; the final commit is then a no-op.
    """
    session = _get_session_local()()
    try:
        yield session
        if session.dirty or session.new or session.deleted:
            session.commit()
    except Exception as e:
        logger.error(
            f"Database session error, rolling back: {e}. "
            f"Error type: {type(e).__name__}, session state: "
            f"dirty={len(session.dirty)}, new={len(session.new)}, deleted={len(session.deleted)}"
        )
        session.rollback()
        raise
    finally:
        session.close()


def get_stats(session: Session) -> dict[str, int]:
    """Return row counts for the exchanged tables."""
    return {
        "workouts": session.scalar(select(func.count()).select_from(Workout)) or 0,
        "categories": session.scalar(select(func.count()).select_from(WorkoutCategory)) or 0,
        "subcategories": session.scalar(select(func.count()).select_from(WorkoutSubcategory)) or 0,
    }
