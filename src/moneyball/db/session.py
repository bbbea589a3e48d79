"""
Database session management for Moneyball.

Provides the SQLAlchemy engine and session factory with connection pooling
configured from config.py. The engine is created lazily on first use so
that importing the models never opens a database connection.

Usage:
    # As a context manager (recommended for scripts)
    from moneyball.db import get_session

    with get_session() as session:
        players = session.query(Player).all()
        # Commits automatically on exit, rolls back on exception

    # Repository wiring
    from moneyball.db import SqlRepository, get_session_factory

    repository = SqlRepository(get_session_factory())
"""

from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from moneyball.config import settings
from moneyball.db.models import Base


def get_engine() -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)
    """
    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.log_level == "DEBUG",
    )


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Session factory bound to the singleton engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=_get_engine(),
        )
    return _session_factory


@contextmanager
def session_scope(factory: Callable[[], Session]) -> Generator[Session, None, None]:
    """
    Transactional scope around a session created by ``factory``.

    Commits on successful exit, rolls back on exception.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions on the configured database.

    Example:
        with get_session() as session:
            player = session.query(Player).filter_by(name="TenZ").first()
            player.division = "T1"
            # Commits automatically when exiting the block
    """
    with session_scope(get_session_factory()) as session:
        yield session


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create any missing tables on ``engine`` (defaults to the configured database)."""
    Base.metadata.create_all(engine or _get_engine())
