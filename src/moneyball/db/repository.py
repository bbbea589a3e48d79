"""
SQLAlchemy implementation of the scheduler's Repository contract.

Read methods return EntitySummary values built inside the session, so no
ORM instance escapes a closed session. Write methods are used by the
scrapers and set updated_at explicitly, since that column drives the
staleness triggers.

Usage:
    from moneyball.db import SqlRepository, get_session_factory

    repository = SqlRepository(get_session_factory())
    stale = repository.find_stale(EntityKind.TEAM, team_update_predicate())
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from moneyball.db.models import DIVISIONS, Player, Team, Tournament
from moneyball.db.session import get_session_factory, session_scope
from moneyball.tasks.models import utc_now
from moneyball.tasks.ports import EntityKind, EntitySummary, StalePredicate

logger = logging.getLogger(__name__)

_MODELS = {
    EntityKind.PLAYER: Player,
    EntityKind.TEAM: Team,
    EntityKind.TOURNAMENT: Tournament,
}

# Columns a listing upsert may overwrite on an existing player
_LISTING_FIELDS = ("vlr_url", "team_name", "country_code", "rating", "acs", "kd_ratio", "adr")

_TEAM_FIELDS = frozenset({"name", "abbreviation", "vlr_url", "region", "logo_url"})
_TOURNAMENT_FIELDS = frozenset({"name", "vlr_url", "status", "prize_pool", "dates", "region"})


def _summary(row: Any) -> EntitySummary:
    return EntitySummary(
        id=row.id,
        division=getattr(row, "division", None),
        rating=getattr(row, "rating", None),
        source_url=row.vlr_url,
        name=row.name,
    )


def division_rank(column):
    """SQL expression ranking T1 first and NULL/unknown divisions last."""
    return case(
        {division: rank for rank, division in enumerate(DIVISIONS)},
        value=column,
        else_=len(DIVISIONS),
    )


class SqlRepository:
    """
    Repository backed by a SQLAlchemy session factory.

    Args:
        session_factory: Callable returning a new Session
                        (defaults to the configured database's factory)
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory or get_session_factory()

    def _scope(self):
        return session_scope(self.session_factory)

    # =========================================================================
    # Reads
    # =========================================================================

    def find_stale(
        self,
        kind: EntityKind,
        predicate: StalePredicate,
        now: Optional[datetime] = None,
    ) -> list[EntitySummary]:
        """Entities of ``kind`` matching ``predicate`` as of ``now``."""
        model = _MODELS[EntityKind(kind)]
        cutoff = predicate.cutoff(now or utc_now())
        timestamp = getattr(model, predicate.timestamp_field)

        conditions = [timestamp < cutoff]
        if predicate.include_never_updated:
            conditions.append(timestamp.is_(None))
        for field_name in predicate.missing_fields:
            conditions.append(getattr(model, field_name).is_(None))

        with self._scope() as session:
            query = session.query(model).filter(or_(*conditions))
            if predicate.divisions is not None:
                query = query.filter(model.division.in_(predicate.divisions))

            if predicate.order_by_rating:
                query = query.order_by(division_rank(model.division), model.rating.desc().nulls_last())
            else:
                query = query.order_by(model.created_at, model.id)

            if predicate.limit is not None:
                query = query.limit(predicate.limit)

            return [_summary(row) for row in query.all()]

    def get_player(self, player_id: str) -> Optional[EntitySummary]:
        with self._scope() as session:
            player = session.get(Player, player_id)
            return _summary(player) if player is not None else None

    def get_team(self, team_id: str) -> Optional[EntitySummary]:
        with self._scope() as session:
            team = session.get(Team, team_id)
            return _summary(team) if team is not None else None

    def get_tournament(self, tournament_id: str) -> Optional[EntitySummary]:
        with self._scope() as session:
            tournament = session.get(Tournament, tournament_id)
            return _summary(tournament) if tournament is not None else None

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert_players(self, listings: Iterable[Any]) -> list[EntitySummary]:
        """
        Insert or update players from stats listing rows, keyed by name.

        Args:
            listings: Objects with a ``name`` and the listing stat attributes
                      (see moneyball.scrape.parsers.vlr.PlayerListing)

        Returns:
            Summaries of every saved player, in input order
        """
        now = utc_now()
        saved = []
        with self._scope() as session:
            for listing in listings:
                player = session.query(Player).filter(Player.name == listing.name).first()
                if player is None:
                    player = Player(name=listing.name, created_at=now)
                    session.add(player)
                for field_name in _LISTING_FIELDS:
                    value = getattr(listing, field_name, None)
                    if value is not None:
                        setattr(player, field_name, value)
                player.updated_at = now
                session.flush()
                saved.append(_summary(player))
        logger.info("Saved %d players from stats listing", len(saved))
        return saved

    def save_player_details(
        self,
        player_id: str,
        agent_usage: dict,
        playstyle: Optional[dict],
        division: Optional[str],
        tournament_history: list,
    ) -> bool:
        with self._scope() as session:
            player = session.get(Player, player_id)
            if player is None:
                logger.warning("Cannot save details, player not found: %s", player_id)
                return False
            player.agent_usage = agent_usage
            player.playstyle = playstyle
            player.division = division
            player.tournament_history = tournament_history
            player.updated_at = utc_now()
        return True

    def save_player_earnings(
        self,
        player_id: str,
        total_earnings: Optional[Decimal],
        earnings_by_year: dict,
        tournament_earnings: list,
        now: Optional[datetime] = None,
    ) -> bool:
        with self._scope() as session:
            player = session.get(Player, player_id)
            if player is None:
                logger.warning("Cannot save earnings, player not found: %s", player_id)
                return False
            player.total_earnings = total_earnings
            player.earnings_by_year = earnings_by_year
            player.tournament_earnings = tournament_earnings
            player.earnings_last_updated = now or utc_now()
        return True

    def save_team(self, team_id: str, **fields: Any) -> bool:
        return self._save(Team, team_id, _TEAM_FIELDS, fields)

    def save_tournament(self, tournament_id: str, **fields: Any) -> bool:
        return self._save(Tournament, tournament_id, _TOURNAMENT_FIELDS, fields)

    def _save(self, model: type, entity_id: str, allowed: frozenset, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown {model.__tablename__} fields: {sorted(unknown)}")

        with self._scope() as session:
            row = session.get(model, entity_id)
            if row is None:
                logger.warning("Cannot save %s, not found: %s", model.__tablename__, entity_id)
                return False
            for field_name, value in fields.items():
                if value is not None:
                    setattr(row, field_name, value)
            row.updated_at = utc_now()
        return True
