"""
Background task scheduling for the scrapers.

Exports the scheduler and the task records most callers need.
"""

from moneyball.tasks.models import (
    PlayerDetail,
    PlayerEarnings,
    RateClass,
    Task,
    TaskKind,
    TeamUpdate,
    TournamentUpdate,
)
from moneyball.tasks.queue import TaskQueue
from moneyball.tasks.rate_limit import RateLimiter, SystemClock
from moneyball.tasks.retry import Drop, Requeue, RetryPolicy
from moneyball.tasks.scheduler import Scheduler
from moneyball.tasks.status import RefreshJob, SchedulerStatus

__all__ = [
    "Drop",
    "PlayerDetail",
    "PlayerEarnings",
    "RateClass",
    "RateLimiter",
    "RefreshJob",
    "Requeue",
    "RetryPolicy",
    "Scheduler",
    "SchedulerStatus",
    "SystemClock",
    "Task",
    "TaskKind",
    "TaskQueue",
    "TeamUpdate",
    "TournamentUpdate",
]
