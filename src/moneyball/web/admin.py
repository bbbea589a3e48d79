"""
Admin endpoints for the scraper scheduler.

All operations acknowledge immediately; the work itself happens in the
scheduler's background loop. Outcomes are visible through
GET /scraper/status, GET /scraper/refresh/jobs and the logs.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from moneyball.tasks.scheduler import Scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scraper", tags=["scraper"])


class RefreshRequest(BaseModel):
    pages: int = Field(default=5, ge=1, description="Stats listing pages to scrape")
    detailed: bool = Field(default=True, description="Also scrape every player's profile")


class EarningsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(default=100, ge=1)
    divisions: list[str] = Field(default_factory=lambda: ["T1", "T2"])
    min_days_since_update: int = Field(default=30, ge=0, alias="minDaysSinceUpdate")


def get_scheduler(request: Request) -> Scheduler:
    """The Scheduler built in the app lifespan."""
    return request.app.state.scheduler


def _result_response(result: dict[str, Any]) -> JSONResponse:
    return JSONResponse(result, status_code=200 if result.get("success") else 400)


@router.get("/status")
async def scraper_status(scheduler: Scheduler = Depends(get_scheduler)):
    return JSONResponse(scheduler.get_queue_status())


@router.post("/player/{player_id}")
async def update_player(player_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    return _result_response(scheduler.update_player_details(player_id))


@router.post("/refresh")
async def full_refresh(
    body: RefreshRequest | None = None,
    scheduler: Scheduler = Depends(get_scheduler),
):
    body = body or RefreshRequest()
    return _result_response(scheduler.trigger_full_refresh(pages=body.pages, detailed=body.detailed))


@router.get("/refresh/jobs")
async def refresh_jobs(scheduler: Scheduler = Depends(get_scheduler)):
    return JSONResponse([job.to_dict() for job in scheduler.refresh_jobs()])


@router.post("/earnings")
async def queue_earnings(
    body: EarningsRequest | None = None,
    scheduler: Scheduler = Depends(get_scheduler),
):
    body = body or EarningsRequest()
    try:
        result = scheduler.queue_earnings_updates(
            limit=body.limit,
            divisions=body.divisions,
            min_days_since_update=body.min_days_since_update,
        )
    except Exception as e:
        logger.exception("Error queuing earnings updates")
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    return _result_response(result)
