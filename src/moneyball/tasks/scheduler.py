"""
Scraper scheduler.

Owns the task queue and the dispatch loop that feeds queued work to the
external collaborators (the VLR extractor and the Liquipedia earnings
client), one rate-limited task at a time by default.

State machine:
    Stopped --init()--> Running --stop()--> Stopped

While running, a tick task wakes every ``scheduler_tick_seconds`` and
dispatches the head of the queue when there is capacity and the previous
task's cool-down has elapsed. Cron jobs built from the TriggerSet feed the
queue in the background.

Usage:
    scheduler = Scheduler(repository, extractor, earnings_client, settings)
    scheduler.init()                      # inside a running event loop
    scheduler.update_player_details(player_id)
    scheduler.get_queue_status()
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional, Sequence

from moneyball.config import Settings, get_settings
from moneyball.exceptions import ConfigurationError, SubjectNotFound
from moneyball.tasks.cron import CronJob
from moneyball.tasks.models import (
    PlayerDetail,
    PlayerEarnings,
    Task,
    TaskKind,
    TeamUpdate,
    TournamentUpdate,
)
from moneyball.tasks.ports import EarningsClient, Extractor, Repository
from moneyball.tasks.queue import TaskQueue
from moneyball.tasks.rate_limit import Clock, RateLimiter, SystemClock
from moneyball.tasks.retry import Requeue, RetryPolicy
from moneyball.tasks.status import RefreshJob, RefreshStatus, SchedulerStatus
from moneyball.tasks.triggers import TriggerSet

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Priority-queue scheduler for scraping work.

    Args:
        repository: Source of stale entities and player lookups
        extractor: VLR.gg scraper (player details, teams, tournaments)
        earnings_client: Liquipedia earnings lookups
        settings: Application settings (defaults to get_settings())
        clock: Time source for cool-downs and timestamps
        rate_limiter: Supplies the post-task cool-down per rate class
        retry_policy: Decides requeue vs drop after a failure
    """

    def __init__(
        self,
        repository: Repository,
        extractor: Extractor,
        earnings_client: EarningsClient,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository
        self.extractor = extractor
        self.earnings_client = earnings_client
        self.clock = clock or SystemClock()
        self.rate_limiter = rate_limiter or RateLimiter.from_settings(self.settings, self.clock)
        self.retry_policy = retry_policy or RetryPolicy(self.settings.scheduler_max_retries)

        self.max_concurrent_requests = self.settings.scheduler_max_concurrent_requests
        self.tick_seconds = self.settings.scheduler_tick_seconds

        self.queue = TaskQueue()
        self.active_requests = 0
        self.is_running = False
        self.triggers = TriggerSet(
            repository, extractor, self.queue.enqueue_batch, self.clock, self.settings
        )

        self._handlers: dict[TaskKind, Callable[[Task], Awaitable[None]]] = {
            TaskKind.PLAYER_DETAIL: self._run_player_detail,
            TaskKind.PLAYER_EARNINGS: self._run_player_earnings,
            TaskKind.TEAM_UPDATE: self._run_team_update,
            TaskKind.TOURNAMENT_UPDATE: self._run_tournament_update,
        }

        self._cron_jobs: list[CronJob] = []
        self._tick_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        # Bumped by stop() so executions started earlier cannot touch new state
        self._generation = 0
        self._cooling = 0
        self._refresh_jobs: dict[str, RefreshJob] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> None:
        """
        Register the cron triggers and start the dispatch loop.

        Must be called from inside a running event loop. A second call
        registers every trigger again (logged as a warning) unless
        ``scheduler_strict_init`` is set, in which case it raises.
        """
        loop = asyncio.get_running_loop()
        descriptors = self.triggers.descriptors()

        if self._cron_jobs:
            if self.settings.scheduler_strict_init:
                raise ConfigurationError(
                    "Scheduler.init() called while already initialized; "
                    "cron triggers are registered"
                )
            logger.warning(
                "Scheduler.init() called again: registering %d cron triggers a second time "
                "(%d already registered), every trigger will now fire more than once",
                len(descriptors), len(self._cron_jobs),
            )

        for descriptor in descriptors:
            job = CronJob(
                descriptor.name,
                descriptor.schedule,
                descriptor.action,
                timezone_name=self.settings.scheduler_timezone,
            )
            job.start()
            self._cron_jobs.append(job)
            logger.debug("Registered trigger %s (%s)", descriptor.name, descriptor.schedule)

        self.is_running = True
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = loop.create_task(self._tick_loop(), name="scheduler:tick")
        logger.info("Scraper scheduler initialized")

    def stop(self) -> None:
        """
        Hard reset: cancel the loop and cron jobs and discard queued work.

        Executions already in flight are not cancelled, but when they finish
        they neither update the counters nor requeue.
        """
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

        for job in self._cron_jobs:
            job.stop()
        self._cron_jobs.clear()

        discarded = self.queue.clear()
        self.active_requests = 0
        self._cooling = 0
        self.is_running = False
        self._generation += 1
        logger.info("Scraper scheduler stopped (%d queued tasks discarded)", discarded)

    @property
    def cron_jobs(self) -> list[CronJob]:
        return list(self._cron_jobs)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def can_dispatch(self) -> bool:
        return (
            self._cooling == 0
            and self.active_requests < self.max_concurrent_requests
            and len(self.queue) > 0
        )

    async def _tick_loop(self) -> None:
        while self.is_running:
            if self.can_dispatch():
                self._spawn(self._dispatch(self._generation), name="scheduler:dispatch")
            await asyncio.sleep(self.tick_seconds)

    async def _dispatch(self, generation: int) -> bool:
        # A tick spawned before stop() must not run work enqueued after it
        if generation != self._generation or not self.is_running:
            return False
        return await self.process_next()

    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def process_next(self) -> bool:
        """
        Run one dispatch cycle to completion, cool-down included.

        Returns:
            True if a task was dispatched, False if nothing was eligible
        """
        if not self.can_dispatch():
            return False

        task = self.queue.dequeue_next()
        if task is None:
            return False

        generation = self._generation
        self.active_requests += 1
        requeued = False
        try:
            await self._execute(task)
        except Exception as e:
            logger.exception("Error processing task %s", task.describe())
            if generation == self._generation:
                requeued = self._handle_failure(task, e)
        finally:
            if generation == self._generation:
                self.active_requests -= 1

        if not requeued and generation == self._generation:
            await self._cool_down(task)
        return True

    async def drain(self) -> int:
        """Process queued tasks one after another until the queue is empty."""
        processed = 0
        while len(self.queue) > 0:
            if not await self.process_next():
                break
            processed += 1
        return processed

    async def _execute(self, task: Task) -> None:
        logger.info("Processing task: %s (priority %s, retries %d)", task.describe(), task.priority, task.retries)
        await self._handlers[task.kind](task)

    def _handle_failure(self, task: Task, error: Exception) -> bool:
        decision = self.retry_policy.on_failure(task, error, self.clock.now())
        if isinstance(decision, Requeue):
            retry = decision.task
            logger.warning(
                "Requeuing task %s (retry %d/%d, priority %s)",
                retry.describe(), retry.retries, self.retry_policy.max_retries, retry.priority,
            )
            self.queue.enqueue(retry)
            return True
        logger.error("Task dropped: %s", decision.reason)
        return False

    async def _cool_down(self, task: Task) -> None:
        delay = self.rate_limiter.delay_for(task.rate_class)
        if delay <= 0:
            return
        generation = self._generation
        self._cooling += 1
        try:
            await self.clock.sleep(delay)
        finally:
            if generation == self._generation:
                self._cooling -= 1

    # Task handlers -----------------------------------------------------------

    async def _run_player_detail(self, task: Task) -> None:
        payload: PlayerDetail = task.payload
        saved = await self.extractor.scrape_and_save(payload.player_id, payload.player_url)
        if not saved:
            logger.warning("No detail data saved for player %s", payload.player_id)

    async def _run_player_earnings(self, task: Task) -> None:
        payload: PlayerEarnings = task.payload
        result = await self.earnings_client.process(payload.player_id)
        if result.success:
            logger.info(
                "Updated earnings for %s: %s",
                result.player_name or payload.player_id, result.total_earnings,
            )
        else:
            # A lookup miss is an outcome, not a failure; it is not retried
            logger.warning(
                "Earnings update unsuccessful for player %s: %s",
                payload.player_id, result.to_dict(),
            )

    async def _run_team_update(self, task: Task) -> None:
        payload: TeamUpdate = task.payload
        if not await self.extractor.refresh_team(payload.team_id):
            logger.warning("No data saved for team %s", payload.team_id)

    async def _run_tournament_update(self, task: Task) -> None:
        payload: TournamentUpdate = task.payload
        if not await self.extractor.refresh_tournament(payload.tournament_id):
            logger.warning("No data saved for tournament %s", payload.tournament_id)

    # =========================================================================
    # Queue access and status
    # =========================================================================

    def add_to_queue(self, task: Task) -> None:
        self.queue.enqueue(task)

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            queue=self.queue.snapshot(),
            active_requests=self.active_requests,
            is_running=self.is_running,
        )

    def get_queue_status(self) -> dict[str, Any]:
        return self.get_status().to_dict()

    # =========================================================================
    # Manual operations
    # =========================================================================

    def update_player_details(self, player_id: str) -> dict[str, Any]:
        """Queue a detailed update for one player ahead of everything else."""
        try:
            player = self.repository.get_player(player_id)
        except Exception as e:
            logger.exception("Error looking up player %s for manual update", player_id)
            return {"success": False, "error": str(e)}
        if player is None:
            error = SubjectNotFound(player_id)
            logger.warning("Manual player update rejected: %s", error)
            return {"success": False, "error": str(error)}

        player_url = player.source_url or f"/player/{player.id}"
        self.add_to_queue(
            Task(
                PlayerDetail(player_id=player.id, player_url=player_url),
                priority=self.settings.manual_task_priority,
                enqueued_at=self.clock.now(),
            )
        )
        return {"success": True, "message": "Player update scheduled"}

    def trigger_full_refresh(self, pages: int = 5, detailed: bool = True) -> dict[str, Any]:
        """
        Start a background scrape of ``pages`` listing pages.

        The refresh runs as its own asyncio task, outside the queue and the
        rate limiter, and is tracked as a RefreshJob.
        """
        job = RefreshJob(
            job_id=uuid.uuid4().hex[:12],
            pages=pages,
            detailed=detailed,
            created_at=self.clock.now(),
        )
        self._refresh_jobs[job.job_id] = job
        self._spawn(self._run_refresh(job), name=f"refresh:{job.job_id}")
        logger.info("Full refresh %s scheduled (%d pages, detailed=%s)", job.job_id, pages, detailed)
        return {
            "success": True,
            "message": (
                f"Full data refresh scheduled ({pages} pages, "
                f"detailed: {'true' if detailed else 'false'})"
            ),
        }

    async def _run_refresh(self, job: RefreshJob) -> None:
        job.status = RefreshStatus.RUNNING
        job.started_at = self.clock.now()
        try:
            count = await self.extractor.scrape_all_players(job.pages, job.detailed)
        except Exception as e:
            job.status = RefreshStatus.FAILED
            job.error = str(e)
            logger.exception("Full refresh %s failed", job.job_id)
        else:
            job.status = RefreshStatus.COMPLETED
            job.players_scraped = count
            logger.info("Full refresh %s completed: %d players", job.job_id, count)
        finally:
            job.finished_at = self.clock.now()
            self._prune_refresh_jobs()

    def _prune_refresh_jobs(self) -> None:
        """Forget the oldest finished jobs beyond ``refresh_job_history``; running jobs stay."""
        finished = [job_id for job_id, job in self._refresh_jobs.items() if job.done]
        for job_id in finished[: max(0, len(finished) - self.settings.refresh_job_history)]:
            del self._refresh_jobs[job_id]

    def refresh_jobs(self) -> list[RefreshJob]:
        return list(self._refresh_jobs.values())

    def queue_earnings_updates(
        self,
        limit: int = 100,
        divisions: Sequence[str] = ("T1", "T2"),
        min_days_since_update: int = 30,
    ) -> dict[str, Any]:
        return self.triggers.queue_earnings_updates(
            limit=limit,
            divisions=divisions,
            min_days_since_update=min_days_since_update,
        )

    async def run_trigger(self, name: str) -> Any:
        """Fire one trigger action now. Errors propagate to the caller."""
        descriptor = self.triggers.get(name)
        logger.info("Running trigger %s on demand", name)
        result = descriptor.action()
        if inspect.isawaitable(result):
            result = await result
        return result
