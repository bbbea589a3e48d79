"""
Database module for Moneyball.

Provides SQLAlchemy ORM models, session management, and the repository
the scheduler reads stale entities from.

Usage:
    from moneyball.db import get_session, Player

    with get_session() as session:
        players = session.query(Player).all()
"""

from moneyball.db.models import Base, DIVISIONS, Player, Team, Tournament
from moneyball.db.repository import SqlRepository
from moneyball.db.session import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    # Base
    "Base",
    "DIVISIONS",
    # Models
    "Player",
    "Team",
    "Tournament",
    # Session
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    # Repository
    "SqlRepository",
]
