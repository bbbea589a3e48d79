"""Status reporting for the scheduler and background refresh jobs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from moneyball.tasks.queue import QueueSnapshot


def format_priority(priority: float) -> str:
    """Render a priority as a histogram key: 10 -> "10", 99.9 -> "99.9"."""
    if float(priority).is_integer():
        return str(int(priority))
    return str(priority)


@dataclass(frozen=True)
class SchedulerStatus:
    queue: QueueSnapshot
    active_requests: int
    is_running: bool

    @property
    def queue_length(self) -> int:
        return self.queue.length

    def to_dict(self) -> dict[str, Any]:
        # Highest priority first, matching dequeue order
        ordered = sorted(self.queue.histogram.items(), key=lambda item: item[0], reverse=True)
        return {
            "queue_length": self.queue.length,
            "active_requests": self.active_requests,
            "is_running": self.is_running,
            "priority_distribution": {format_priority(p): count for p, count in ordered},
        }


class RefreshStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RefreshJob:
    """A full-data refresh running outside the task queue."""

    job_id: str
    pages: int
    detailed: bool
    status: RefreshStatus = RefreshStatus.PENDING
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    players_scraped: Optional[int] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status in (RefreshStatus.COMPLETED, RefreshStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "job_id": self.job_id,
            "pages": self.pages,
            "detailed": self.detailed,
            "status": self.status.value,
            "created_at": iso(self.created_at),
            "started_at": iso(self.started_at),
            "finished_at": iso(self.finished_at),
            "players_scraped": self.players_scraped,
            "error": self.error,
        }
