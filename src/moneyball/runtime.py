"""
Process wiring: builds a Scheduler with its real collaborators.

Used by the web app lifespan and the scheduler CLI.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from moneyball.config import Settings, get_settings
from moneyball.db.repository import SqlRepository
from moneyball.scrape.liquipedia import LiquipediaClient
from moneyball.scrape.vlr import VLRScraper
from moneyball.tasks.rate_limit import RateLimiter
from moneyball.tasks.scheduler import Scheduler


@asynccontextmanager
async def scheduler_runtime(settings: Optional[Settings] = None) -> AsyncIterator[Scheduler]:
    """
    Open both scrapers and yield a Scheduler wired to them.

    Each external site gets its own RateLimiter. The Scheduler is returned
    stopped; callers decide whether to init() it. The scrapers are closed
    on exit.

    Usage:
        async with scheduler_runtime() as scheduler:
            scheduler.init()
            ...
            scheduler.stop()
    """
    settings = settings or get_settings()
    repository = SqlRepository()

    async with VLRScraper(repository, RateLimiter.from_settings(settings)) as vlr, \
            LiquipediaClient(repository, RateLimiter.from_settings(settings)) as liquipedia:
        yield Scheduler(repository, vlr, liquipedia, settings)
