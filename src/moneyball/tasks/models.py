"""Task records handled by the scraper scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskKind(str, Enum):
    PLAYER_DETAIL = "player_detail"
    PLAYER_EARNINGS = "player_earnings"
    TEAM_UPDATE = "team_update"
    TOURNAMENT_UPDATE = "tournament_update"


class RateClass(str, Enum):
    """Delay class of the outbound work a task performs."""

    GENERAL = "general"
    HEAVY = "heavy"


@dataclass(frozen=True)
class PlayerDetail:
    """Scrape a player's VLR.gg profile (agents, playstyle, division)."""

    player_id: str
    player_url: str

    kind: ClassVar[TaskKind] = TaskKind.PLAYER_DETAIL

    @property
    def subject_id(self) -> str:
        return self.player_id


@dataclass(frozen=True)
class PlayerEarnings:
    """Look up a player's earnings on Liquipedia."""

    player_id: str

    kind: ClassVar[TaskKind] = TaskKind.PLAYER_EARNINGS

    @property
    def subject_id(self) -> str:
        return self.player_id


@dataclass(frozen=True)
class TeamUpdate:
    team_id: str

    kind: ClassVar[TaskKind] = TaskKind.TEAM_UPDATE

    @property
    def subject_id(self) -> str:
        return self.team_id


@dataclass(frozen=True)
class TournamentUpdate:
    tournament_id: str

    kind: ClassVar[TaskKind] = TaskKind.TOURNAMENT_UPDATE

    @property
    def subject_id(self) -> str:
        return self.tournament_id


TaskPayload = Union[PlayerDetail, PlayerEarnings, TeamUpdate, TournamentUpdate]


@dataclass(frozen=True)
class Task:
    """
    A unit of deferred scraping work.

    Tasks are immutable; a retry produces a new Task via ``requeued()``
    with one more retry, one less priority and a fresh enqueue time.
    """

    payload: TaskPayload
    priority: float
    retries: int = 0
    enqueued_at: datetime = field(default_factory=utc_now)

    @property
    def kind(self) -> TaskKind:
        return self.payload.kind

    @property
    def subject_id(self) -> str:
        return self.payload.subject_id

    @property
    def rate_class(self) -> RateClass:
        # Earnings lookups end in a full wiki page parse
        if self.kind is TaskKind.PLAYER_EARNINGS:
            return RateClass.HEAVY
        return RateClass.GENERAL

    def requeued(self, now: datetime | None = None) -> "Task":
        return replace(
            self,
            priority=self.priority - 1,
            retries=self.retries + 1,
            enqueued_at=now or utc_now(),
        )

    def describe(self) -> str:
        return f"{self.kind.value} for ID: {self.subject_id}"

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "type": self.kind.value,
            "subject_id": self.subject_id,
            "priority": self.priority,
            "retries": self.retries,
            "enqueued_at": self.enqueued_at.isoformat(),
        }
        if isinstance(self.payload, PlayerDetail):
            payload["player_url"] = self.payload.player_url
        return payload
