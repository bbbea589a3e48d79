"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests: an in-memory database, scheduler settings
tuned for fast tests, and fake collaborators for the scheduler.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from moneyball.config import Settings
from moneyball.db.models import Base
from moneyball.db.repository import SqlRepository
from moneyball.exceptions import TransientFetchError
from moneyball.tasks.ports import EarningsResult, EntityKind, EntitySummary

NOW = datetime(2026, 1, 15, 12, 0, 0)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory with a static pool so every session sees the
    same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    """A session for arranging rows directly."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repository(session_factory):
    return SqlRepository(session_factory)


# =============================================================================
# Scheduler fakes
# =============================================================================

class FakeClock:
    """Clock whose sleeps return immediately and are recorded."""

    def __init__(self, now: datetime = NOW):
        self.current = now
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.elapsed

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.elapsed += seconds
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds
        self.current += timedelta(seconds=seconds)


class FakeRepository:
    def __init__(self):
        self.players: dict[str, EntitySummary] = {}
        self.stale: dict[EntityKind, list[EntitySummary]] = {kind: [] for kind in EntityKind}
        self.queries: list[tuple] = []
        self.error: Optional[Exception] = None

    def add_player(self, player_id: str, **kwargs) -> EntitySummary:
        summary = EntitySummary(id=player_id, **kwargs)
        self.players[player_id] = summary
        return summary

    def find_stale(self, kind, predicate, now=None):
        self.queries.append((kind, predicate, now))
        if self.error is not None:
            raise self.error
        rows = list(self.stale[kind])
        if predicate.limit is not None:
            rows = rows[: predicate.limit]
        return rows

    def get_player(self, player_id):
        if self.error is not None:
            raise self.error
        return self.players.get(player_id)


class FakeExtractor:
    """
    Records calls and can fail or block on demand.

    failures: subject id -> number of calls that raise TransientFetchError
    gate: when set to an asyncio.Event, every task call waits for it
    refresh_gate: the same for scrape_all_players
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.failures: dict[str, int] = {}
        self.gate: Optional[asyncio.Event] = None
        self.active = 0
        self.max_active = 0
        self.refresh_result = 0
        self.refresh_error: Optional[Exception] = None
        self.refresh_gate: Optional[asyncio.Event] = None

    async def _run(self, kind: str, subject_id: str) -> bool:
        self.calls.append((kind, subject_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            remaining = self.failures.get(subject_id, 0)
            if remaining:
                self.failures[subject_id] = remaining - 1
                raise TransientFetchError(f"boom: {subject_id}")
            return True
        finally:
            self.active -= 1

    async def scrape_and_save(self, player_id, player_url):
        return await self._run("player_detail", player_id)

    async def refresh_team(self, team_id):
        return await self._run("team_update", team_id)

    async def refresh_tournament(self, tournament_id):
        return await self._run("tournament_update", tournament_id)

    async def scrape_all_players(self, pages, detailed):
        self.calls.append(("scrape_all_players", pages, detailed))
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_result


class FakeEarningsClient:
    def __init__(self):
        self.calls: list[str] = []
        self.results: dict[str, EarningsResult] = {}
        self.errors: dict[str, Exception] = {}

    async def process(self, player_id):
        self.calls.append(player_id)
        if player_id in self.errors:
            raise self.errors[player_id]
        return self.results.get(player_id, EarningsResult(success=True, player_name=player_id))


def make_settings(**overrides) -> Settings:
    """Settings for fast, deterministic scheduler tests."""
    values = dict(
        scheduler_autostart=False,
        scheduler_tick_seconds=0.01,
        scheduler_max_concurrent_requests=1,
        scheduler_max_retries=3,
        rate_limit_general_seconds=0.0,
        rate_limit_heavy_seconds=0.0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_repository():
    return FakeRepository()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def fake_earnings():
    return FakeEarningsClient()


@pytest.fixture
def scheduler_settings():
    return make_settings()


@pytest.fixture
def build_scheduler(fake_repository, fake_extractor, fake_earnings, clock):
    """Factory for a Scheduler wired to the fakes; keyword args override settings."""
    from moneyball.tasks.scheduler import Scheduler

    def _build(**overrides):
        return Scheduler(
            fake_repository,
            fake_extractor,
            fake_earnings,
            settings=make_settings(**overrides),
            clock=clock,
        )

    return _build
