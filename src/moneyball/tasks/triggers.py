"""
Periodic triggers that turn stale entities into queued tasks.

Each trigger has two halves:
- a pure planning side (a StalePredicate describing what is stale, and a
  plan_* function turning the selected entities into Tasks), which has no
  clock or database dependency and is unit-tested directly;
- a TriggerSet action that runs the predicate against the Repository and
  hands the planned tasks to the queue.

The cron schedules live in TriggerDescriptor records built from settings and
are registered by the Scheduler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Union

from moneyball.tasks.models import (
    PlayerDetail,
    PlayerEarnings,
    Task,
    TeamUpdate,
    TournamentUpdate,
)
from moneyball.tasks.ports import (
    EntityKind,
    EntitySummary,
    Extractor,
    Repository,
    StalePredicate,
)
from moneyball.tasks.rate_limit import Clock

logger = logging.getLogger(__name__)

# Task priority by division tier (higher runs first)
DIVISION_PRIORITY: dict[str, int] = {
    "T1": 10,
    "T2": 8,
    "T3": 5,
    "T4": 3,
    "Unranked": 1,
}

TEAM_UPDATE_PRIORITY = 5
TOURNAMENT_UPDATE_PRIORITY = 7

# Earnings tasks are staggered by rank so the queue keeps the selection order
EARNINGS_BASE_PRIORITY = 100
EARNINGS_PRIORITY_STEP = 0.1

DETAILED_PLAYER_MISSING_FIELDS = ("agent_usage", "playstyle", "division")


# =============================================================================
# Pure planning functions
# =============================================================================

def division_priority(division: Optional[str]) -> int:
    """Priority for a division; NULL counts as Unranked, unknown tiers as 0."""
    return DIVISION_PRIORITY.get(division or "Unranked", 0)


def player_source_url(player: EntitySummary) -> str:
    return player.source_url or f"/player/{player.id}"


def detailed_player_predicate() -> StalePredicate:
    """Players not updated for a week, or missing any detailed field."""
    return StalePredicate(
        older_than=timedelta(days=7),
        missing_fields=DETAILED_PLAYER_MISSING_FIELDS,
    )


def team_update_predicate() -> StalePredicate:
    return StalePredicate(older_than=timedelta(days=7))


def tournament_update_predicate() -> StalePredicate:
    return StalePredicate(older_than=timedelta(days=1))


def earnings_predicate(
    limit: int,
    divisions: Sequence[str],
    min_days_since_update: int,
) -> StalePredicate:
    """Players in ``divisions`` whose earnings are missing or too old, best first."""
    return StalePredicate(
        older_than=timedelta(days=min_days_since_update),
        timestamp_field="earnings_last_updated",
        include_never_updated=True,
        divisions=tuple(divisions),
        order_by_rating=True,
        limit=limit,
    )


def plan_detailed_player_tasks(players: Iterable[EntitySummary], now: datetime) -> list[Task]:
    """One PlayerDetail per player, highest division first (stable within a tier)."""
    ordered = sorted(players, key=lambda p: division_priority(p.division), reverse=True)
    return [
        Task(
            PlayerDetail(player_id=p.id, player_url=player_source_url(p)),
            priority=division_priority(p.division),
            enqueued_at=now,
        )
        for p in ordered
    ]


def plan_team_tasks(teams: Iterable[EntitySummary], now: datetime) -> list[Task]:
    return [Task(TeamUpdate(team_id=t.id), priority=TEAM_UPDATE_PRIORITY, enqueued_at=now) for t in teams]


def plan_tournament_tasks(tournaments: Iterable[EntitySummary], now: datetime) -> list[Task]:
    return [
        Task(TournamentUpdate(tournament_id=t.id), priority=TOURNAMENT_UPDATE_PRIORITY, enqueued_at=now)
        for t in tournaments
    ]


def earnings_priority(index: int) -> float:
    return round(EARNINGS_BASE_PRIORITY - index * EARNINGS_PRIORITY_STEP, 1)


def plan_earnings_tasks(players: Iterable[EntitySummary], now: datetime) -> list[Task]:
    """PlayerEarnings tasks prioritised 100, 99.9, 99.8, ... in selection order."""
    return [
        Task(PlayerEarnings(player_id=p.id), priority=earnings_priority(index), enqueued_at=now)
        for index, p in enumerate(players)
    ]


# =============================================================================
# Trigger registration
# =============================================================================

TriggerAction = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class TriggerDescriptor:
    """A named cron schedule and the action it fires."""

    name: str
    schedule: str
    action: TriggerAction
    description: str = ""


class TriggerSet:
    """
    The five periodic triggers, bound to their collaborators.

    Args:
        repository: Source of stale entities
        extractor: Used directly by the basic refresh (bypasses the queue)
        enqueue: Callable that adds a batch of tasks and returns the count
        clock: Time source for staleness cutoffs
        settings: Schedules and batch sizes
    """

    def __init__(
        self,
        repository: Repository,
        extractor: Extractor,
        enqueue: Callable[[Iterable[Task]], int],
        clock: Clock,
        settings,
    ):
        self.repository = repository
        self.extractor = extractor
        self.enqueue = enqueue
        self.clock = clock
        self.settings = settings

    async def run_basic_refresh(self) -> int:
        """Nightly bulk scrape of the stats listing (not detailed, not queued)."""
        logger.info("Running scheduled basic data update...")
        count = await self.extractor.scrape_all_players(self.settings.basic_refresh_pages, False)
        logger.info("Scheduled basic data update completed (%d players)", count)
        return count

    def enqueue_detailed_player_updates(self) -> int:
        now = self.clock.now()
        players = self.repository.find_stale(EntityKind.PLAYER, detailed_player_predicate(), now)
        logger.info("Found %d players needing detailed updates", len(players))
        return self.enqueue(plan_detailed_player_tasks(players, now))

    def enqueue_team_updates(self) -> int:
        now = self.clock.now()
        teams = self.repository.find_stale(EntityKind.TEAM, team_update_predicate(), now)
        logger.info("Found %d teams needing updates", len(teams))
        return self.enqueue(plan_team_tasks(teams, now))

    def enqueue_tournament_updates(self) -> int:
        now = self.clock.now()
        tournaments = self.repository.find_stale(EntityKind.TOURNAMENT, tournament_update_predicate(), now)
        logger.info("Found %d tournaments needing updates", len(tournaments))
        return self.enqueue(plan_tournament_tasks(tournaments, now))

    def queue_earnings_updates(
        self,
        limit: int = 100,
        divisions: Sequence[str] = ("T1", "T2"),
        min_days_since_update: int = 30,
    ) -> dict[str, Any]:
        now = self.clock.now()
        predicate = earnings_predicate(limit, divisions, min_days_since_update)
        players = self.repository.find_stale(EntityKind.PLAYER, predicate, now)
        logger.info("Found %d players needing earnings updates", len(players))
        queued = self.enqueue(plan_earnings_tasks(players, now))
        return {
            "success": True,
            "queued_players": queued,
            "divisions": list(divisions),
        }

    def enqueue_scheduled_earnings(self) -> dict[str, Any]:
        result = self.queue_earnings_updates(
            limit=self.settings.earnings_batch_limit,
            divisions=self.settings.earnings_divisions,
            min_days_since_update=self.settings.earnings_min_days_since_update,
        )
        logger.info("Queued %d players for earnings updates", result["queued_players"])
        return result

    def descriptors(self) -> list[TriggerDescriptor]:
        s = self.settings
        return [
            TriggerDescriptor(
                "basic_data_refresh", s.cron_basic_refresh, self.run_basic_refresh,
                "Bulk scrape of the stats listing",
            ),
            TriggerDescriptor(
                "detailed_player_update", s.cron_detailed_player_update, self.enqueue_detailed_player_updates,
                "Queue players that are stale or missing detailed data",
            ),
            TriggerDescriptor(
                "team_update", s.cron_team_update, self.enqueue_team_updates,
                "Queue teams not updated for a week",
            ),
            TriggerDescriptor(
                "tournament_update", s.cron_tournament_update, self.enqueue_tournament_updates,
                "Queue tournaments not updated for a day",
            ),
            TriggerDescriptor(
                "earnings_update", s.cron_earnings_update, self.enqueue_scheduled_earnings,
                "Queue top-division players for Liquipedia earnings",
            ),
        ]

    def get(self, name: str) -> TriggerDescriptor:
        for descriptor in self.descriptors():
            if descriptor.name == name:
                return descriptor
        raise KeyError(f"Unknown trigger: {name}")
