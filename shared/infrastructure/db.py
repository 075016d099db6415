"""
Database configuration and session management for the user store.
Uses SQLAlchemy 2.0 patterns.

The engine is created lazily so tests and the CLI can point DATABASE_URL
somewhere else before first use.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config.settings import settings

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _create_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        if ":memory:" in url:
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,  # Wait max 30s for connection from pool
        pool_recycle=1800,  # Recycle connections after 30 minutes
    )


def get_engine() -> Engine:
    """Get (creating on first use) the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = _create_engine(settings.database_url)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Get the session factory bound to the process-wide engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _session_factory


def reset_engine(url: str | None = None) -> Engine:
    """
    Dispose the current engine and create a new one.

    Used by tests to bind an isolated in-memory database.
    """
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = _create_engine(url or settings.database_url)
    _session_factory = None
    return _engine


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI.

    Usage:
        with get_db_context() as db:
            db.execute(...)
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
