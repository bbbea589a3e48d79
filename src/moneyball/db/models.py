"""
SQLAlchemy ORM models for Moneyball.

Only the columns the scheduler and its scrapers read or write are modelled
here. Every entity carries an updated_at timestamp, which is what the
periodic triggers use to decide whether a row is stale.

Tables:
- players: Pro players scraped from VLR.gg, enriched with Liquipedia earnings
- teams: Teams referenced by player rosters
- tournaments: Events tracked on VLR.gg
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Index, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Division tiers in competitive order, used for sorting earnings candidates
DIVISIONS: tuple[str, ...] = ("T1", "T2", "T3", "T4", "Unranked")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Player Models
# =============================================================================

class Player(Base):
    """
    Player record built from the VLR.gg stats listing.

    Basic stats come from the list pages; agent_usage, playstyle, division
    and tournament_history are filled in by the detailed player update.
    Earnings columns are written by the Liquipedia earnings update.
    """
    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Relative VLR.gg profile path, e.g. "/player/9/tenz"
    vlr_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    team_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Aggregate stats from the listing page
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    acs: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    kd_ratio: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    adr: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Detailed profile (NULL until the detailed update has run)
    division: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    agent_usage: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    playstyle: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    tournament_history: Mapped[Optional[list]] = mapped_column(JSON(none_as_null=True), nullable=True)

    # Earnings (from Liquipedia)
    total_earnings: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    earnings_by_year: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    tournament_earnings: Mapped[Optional[list]] = mapped_column(JSON(none_as_null=True), nullable=True)
    earnings_last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Metadata
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_players_division_rating", "division", "rating"),
        Index("idx_players_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}', division={self.division})>"


# =============================================================================
# Team & Tournament Models
# =============================================================================

class Team(Base):
    """Team master data, refreshed weekly from the team's VLR.gg page."""
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    abbreviation: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vlr_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}')>"


class Tournament(Base):
    """Event data, refreshed daily from the event's VLR.gg page."""
    __tablename__ = "tournaments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vlr_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # 'upcoming', 'ongoing', 'completed'
    prize_pool: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    dates: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, name='{self.name}')>"
