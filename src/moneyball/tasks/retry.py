"""Retry policy applied to tasks whose execution raised."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from moneyball.exceptions import PermanentFailure
from moneyball.tasks.models import Task


@dataclass(frozen=True)
class Requeue:
    task: Task


@dataclass(frozen=True)
class Drop:
    task: Task
    reason: PermanentFailure


RetryDecision = Union[Requeue, Drop]


class RetryPolicy:
    """
    Linear priority decay with a fixed retry budget.

    A failed task is requeued with retries + 1 and priority - 1 until it has
    used up ``max_retries``; the next failure drops it. There is no time-based
    backoff: the lowered priority lets fresher work overtake the retry.
    """

    def __init__(self, max_retries: int = 3):
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries

    def on_failure(
        self,
        task: Task,
        error: Optional[BaseException] = None,
        now: Optional[datetime] = None,
    ) -> RetryDecision:
        if task.retries < self.max_retries:
            return Requeue(task.requeued(now))
        return Drop(task, PermanentFailure(task.describe(), task.retries, error))
