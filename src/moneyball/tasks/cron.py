"""Cron-scheduled jobs running inside the asyncio event loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union
from zoneinfo import ZoneInfo

from croniter import croniter

logger = logging.getLogger(__name__)

CronAction = Callable[[], Union[Any, Awaitable[Any]]]


def next_fire_time(expression: str, base: datetime) -> datetime:
    """Next time ``expression`` fires strictly after ``base``."""
    return croniter(expression, base).get_next(datetime)


class CronJob:
    """
    Runs ``action`` every time ``expression`` fires.

    The job sleeps until the next fire time computed by croniter, runs the
    action, and repeats. An exception from the action is logged and the job
    keeps its schedule.

    Usage:
        job = CronJob("team_update", "0 4 * * 0", scheduler.enqueue_team_updates)
        job.start()
        ...
        job.stop()
    """

    def __init__(
        self,
        name: str,
        expression: str,
        action: CronAction,
        timezone_name: str = "UTC",
    ):
        if not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression for {name}: {expression!r}")
        self.name = name
        self.expression = expression
        self.action = action
        self.tz = ZoneInfo(timezone_name)
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run(self, base: Optional[datetime] = None) -> datetime:
        return next_fire_time(self.expression, base or datetime.now(timezone.utc).astimezone(self.tz))

    def start(self) -> None:
        """Schedule the job on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run_forever(), name=f"cron:{self.name}"
        )

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def fire(self) -> Any:
        """Run the action once, now. Errors are logged, not raised."""
        self.runs += 1
        try:
            result = self.action()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception:
            logger.exception("Cron job %s failed", self.name)
            return None

    async def _run_forever(self) -> None:
        last_target: Optional[datetime] = None
        while True:
            now = datetime.now(self.tz)
            # Never compute from before the previous target, so an early
            # wake-up cannot fire the same slot twice
            base = max(now, last_target) if last_target is not None else now
            target = self.next_run(base)
            delay = (target - now).total_seconds()
            logger.debug("Cron job %s sleeping %.0fs until %s", self.name, delay, target.isoformat())
            await asyncio.sleep(max(delay, 0))
            logger.info("Running scheduled job %s", self.name)
            await self.fire()
            last_target = target
