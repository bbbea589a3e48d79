"""
In-memory priority queue of scraping tasks.

Tasks are ordered by priority (highest first); tasks of equal priority come
out in the order they went in. The queue itself never drops work: tasks leave
it only through dequeue_next() or an explicit clear().
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from moneyball.tasks.models import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueSnapshot:
    """Point-in-time view of the queue."""

    length: int
    histogram: dict[float, int] = field(default_factory=dict)


class TaskQueue:
    """
    Priority queue of pending tasks.

    Backed by a binary heap keyed on (-priority, sequence). The sequence
    number is a monotonically increasing insertion counter, which keeps
    equal-priority tasks FIFO.

    Usage:
        queue = TaskQueue()
        queue.enqueue(Task(TeamUpdate("team-1"), priority=5))
        queue.enqueue(Task(TournamentUpdate("event-9"), priority=7))

        task = queue.dequeue_next()   # the tournament update (priority 7)
        queue.snapshot()              # QueueSnapshot(length=1, histogram={5: 1})
    """

    def __init__(self) -> None:
        self._heap: list[tuple[float, int, Task]] = []
        self._sequence = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def enqueue(self, task: Task) -> None:
        heapq.heappush(self._heap, (-task.priority, next(self._sequence), task))
        logger.debug(
            "Task added to queue: %s (priority %s). Current queue length: %d",
            task.describe(), task.priority, len(self._heap),
        )

    def enqueue_batch(self, tasks: Iterable[Task]) -> int:
        """Enqueue every task in order; returns how many were added."""
        count = 0
        for task in tasks:
            self.enqueue(task)
            count += 1
        if count:
            logger.info("Added %d tasks to queue. Current queue length: %d", count, len(self._heap))
        return count

    def dequeue_next(self) -> Optional[Task]:
        """Remove and return the highest-priority task, or None when empty."""
        if not self._heap:
            return None
        _, _, task = heapq.heappop(self._heap)
        return task

    def pending(self) -> list[Task]:
        """Copy of the queued tasks in dequeue order."""
        return [task for _, _, task in sorted(self._heap)]

    def snapshot(self) -> QueueSnapshot:
        histogram = Counter(task.priority for _, _, task in self._heap)
        return QueueSnapshot(length=len(self._heap), histogram=dict(histogram))

    def clear(self) -> int:
        """Drop every pending task; returns how many were removed."""
        removed = len(self._heap)
        self._heap = []
        return removed
