"""
FastAPI application serving the scraper admin endpoints.

Run with:
    uvicorn moneyball.web.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from moneyball.config import settings
from moneyball.logging_setup import setup_logging
from moneyball.runtime import scheduler_runtime
from moneyball.tasks.scheduler import Scheduler
from moneyball.web.admin import router as admin_router

logger = logging.getLogger(__name__)


def _start(scheduler: Scheduler) -> None:
    if scheduler.settings.scheduler_autostart and not scheduler.is_running:
        scheduler.init()


def create_app(scheduler: Optional[Scheduler] = None) -> FastAPI:
    """
    Build the admin app.

    Args:
        scheduler: Pre-built Scheduler (tests). When omitted, the lifespan
                   opens the scrapers and builds one against the configured
                   database.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)

        if app.state.scheduler is not None:
            _start(app.state.scheduler)
            try:
                yield
            finally:
                app.state.scheduler.stop()
            return

        async with scheduler_runtime(settings) as built:
            app.state.scheduler = built
            _start(built)
            logger.info("Moneyball admin API started")
            try:
                yield
            finally:
                built.stop()
                app.state.scheduler = None

    app = FastAPI(title="Moneyball Scraper Admin", lifespan=lifespan)
    app.state.scheduler = scheduler
    app.include_router(admin_router)
    return app


app = create_app()
