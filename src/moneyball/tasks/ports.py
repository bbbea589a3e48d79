"""
Collaborator contracts consumed by the scheduler.

The scheduler never talks to the database or the network directly. It goes
through these protocols, which are implemented by moneyball.db.repository
and moneyball.scrape, and by simple fakes in the tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol


class EntityKind(str, Enum):
    PLAYER = "player"
    TEAM = "team"
    TOURNAMENT = "tournament"


@dataclass(frozen=True)
class EntitySummary:
    """The few fields of an entity that task planning needs."""

    id: str
    division: Optional[str] = None
    rating: Optional[float] = None
    source_url: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class StalePredicate:
    """
    Selection rule for stale entities.

    An entity matches when its ``timestamp_field`` is older than
    ``now - older_than``, or when any of ``missing_fields`` is NULL, or (with
    ``include_never_updated``) when the timestamp itself is NULL. The optional
    ``divisions`` filter is ANDed on top of that.

    With ``order_by_rating`` results come back by division rank then rating
    descending; ``limit`` caps the result size.
    """

    older_than: timedelta
    timestamp_field: str = "updated_at"
    missing_fields: tuple[str, ...] = ()
    include_never_updated: bool = False
    divisions: Optional[tuple[str, ...]] = None
    order_by_rating: bool = False
    limit: Optional[int] = None

    def cutoff(self, now: datetime) -> datetime:
        return now - self.older_than


@dataclass
class EarningsResult:
    """Outcome of one earnings lookup."""

    success: bool
    player_name: Optional[str] = None
    total_earnings: Optional[Decimal] = None
    tournaments_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.player_name is not None:
            payload["player_name"] = self.player_name
        if self.total_earnings is not None:
            payload["total_earnings"] = float(self.total_earnings)
        if self.success:
            payload["tournaments_count"] = self.tournaments_count
        if self.error is not None:
            payload["error"] = self.error
        return payload


class Repository(Protocol):
    def find_stale(
        self,
        kind: EntityKind,
        predicate: StalePredicate,
        now: Optional[datetime] = None,
    ) -> list[EntitySummary]: ...

    def get_player(self, player_id: str) -> Optional[EntitySummary]: ...


class Extractor(Protocol):
    async def scrape_and_save(self, player_id: str, player_url: str) -> bool: ...

    async def refresh_team(self, team_id: str) -> bool: ...

    async def refresh_tournament(self, tournament_id: str) -> bool: ...

    async def scrape_all_players(self, pages: int, detailed: bool) -> int: ...


class EarningsClient(Protocol):
    async def process(self, player_id: str) -> EarningsResult: ...

