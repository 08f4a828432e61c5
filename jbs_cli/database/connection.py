"""
Database connection management for JBS.

Each run store owns its own SQLAlchemy engine and session factory, so
several independent schedulers can live in one process and tests can use
throwaway in-memory stores.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

MEMORY_DATABASE_URL = "sqlite://"

# Seconds SQLite waits on a locked database before giving up
BUSY_TIMEOUT = 30


def database_url_for(location: Union[str, Path]) -> str:
    """
    Build a database URL from a store location.

    Args:
        location: File path, ``":memory:"``, or an existing ``sqlite:`` URL

    Returns:
        SQLAlchemy database URL
    """
    location = str(location)
    if location.startswith("sqlite:"):
        return location
    if location in ("", ":memory:"):
        return MEMORY_DATABASE_URL
    return f"sqlite:///{location}"


def is_memory_url(database_url: str) -> bool:
    """Check whether a URL points at an in-memory SQLite database."""
    return database_url in ("sqlite://", "sqlite:///:memory:") or database_url.endswith(":memory:")


def get_db_path(database_url: str) -> Optional[Path]:
    """
    Get the database file path.

    Args:
        database_url: SQLite database URL

    Returns:
        Path to the SQLite database file, or None for in-memory databases
    """
    if is_memory_url(database_url):
        return None

    # Extract path from database_url (sqlite:///path)
    if database_url.startswith("sqlite:///"):
        return Path(database_url[10:])

    return None


def init_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the run store.

    In-memory databases share a single connection so every session sees
    the same data. File databases use WAL journaling so a reader in one
    invocation does not block the writer in another.

    Args:
        database_url: SQLite database URL

    Returns:
        Configured SQLAlchemy engine
    """
    if is_memory_url(database_url):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        # Ensure database directory exists
        db_path = get_db_path(database_url)
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,
                "timeout": BUSY_TIMEOUT,
            },
            pool_pre_ping=True,
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL journaling for concurrent invocations."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    logger.debug(f"Database engine initialized: {database_url}")
    return engine


def get_session_maker(engine: Engine) -> sessionmaker:
    """
    Create a session maker bound to an engine.

    Objects stay readable after commit so runs can be handed back to
    callers once their session is closed.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Get a database session context manager.

    Usage:
        with session_scope(factory) as session:
            run = session.query(Run).first()

    Commits on success, rolls back and re-raises on error.

    Args:
        session_factory: Session maker to draw the session from

    Yields:
        SQLAlchemy Session
    """
    session = session_factory()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create all database tables that do not exist yet.

    Safe to call on every process start.

    Args:
        engine: Engine to create the tables on
    """
    from jbs_cli.database.models import Base

    Base.metadata.create_all(bind=engine)
    logger.debug("Database tables ensured")

