"""Unit tests for the task queue, task records and retry policy."""

from datetime import datetime

import pytest

from moneyball.exceptions import PermanentFailure
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
from moneyball.tasks.retry import Drop, Requeue, RetryPolicy

T0 = datetime(2026, 1, 15, 12, 0, 0)


def _team(team_id: str, priority: float, retries: int = 0) -> Task:
    return Task(TeamUpdate(team_id), priority=priority, retries=retries, enqueued_at=T0)


class TestTaskQueue:
    def test_higher_priority_dequeues_first(self):
        queue = TaskQueue()
        queue.enqueue(_team("low", 5))
        queue.enqueue(_team("high", 10))

        assert queue.dequeue_next().subject_id == "high"
        assert queue.dequeue_next().subject_id == "low"

    def test_equal_priorities_are_fifo(self):
        queue = TaskQueue()
        for name in ("a", "b", "c"):
            queue.enqueue(_team(name, 7))
        queue.enqueue(_team("urgent", 8))

        order = [queue.dequeue_next().subject_id for _ in range(4)]
        assert order == ["urgent", "a", "b", "c"]

    def test_dequeue_empty_returns_none(self):
        assert TaskQueue().dequeue_next() is None

    def test_pending_is_ordered_and_non_destructive(self):
        queue = TaskQueue()
        queue.enqueue_batch([_team("x", 1), _team("y", 99.9), _team("z", 100)])

        assert [t.subject_id for t in queue.pending()] == ["z", "y", "x"]
        assert len(queue) == 3

    def test_priorities_non_increasing(self):
        queue = TaskQueue()
        queue.enqueue_batch(_team(str(p), p) for p in (3, 10, 1, 7, 7, 999, 5))

        priorities = []
        while (task := queue.dequeue_next()) is not None:
            priorities.append(task.priority)
        assert priorities == sorted(priorities, reverse=True)

    def test_enqueue_batch_returns_count(self):
        queue = TaskQueue()
        assert queue.enqueue_batch([_team("a", 1), _team("b", 2)]) == 2
        assert queue.enqueue_batch([]) == 0

    def test_snapshot_histogram(self):
        queue = TaskQueue()
        queue.enqueue_batch([_team("a", 5), _team("b", 5), _team("c", 7)])

        snapshot = queue.snapshot()
        assert snapshot.length == 3
        assert snapshot.histogram == {5: 2, 7: 1}
        # Snapshot does not consume
        assert len(queue) == 3

    def test_clear(self):
        queue = TaskQueue()
        queue.enqueue_batch([_team("a", 5), _team("b", 5)])

        assert queue.clear() == 2
        assert len(queue) == 0
        assert queue.dequeue_next() is None


class TestTask:
    def test_kind_and_subject_from_payload(self):
        task = Task(PlayerDetail("p1", "/player/1/tenz"), priority=10)
        assert task.kind is TaskKind.PLAYER_DETAIL
        assert task.subject_id == "p1"
        assert task.describe() == "player_detail for ID: p1"

    def test_rate_class(self):
        assert Task(PlayerEarnings("p1"), priority=100).rate_class is RateClass.HEAVY
        assert Task(TournamentUpdate("e1"), priority=7).rate_class is RateClass.GENERAL

    def test_requeued_decays_priority(self):
        later = datetime(2026, 1, 15, 12, 5, 0)
        retry = _team("t1", 10).requeued(later)

        assert retry.priority == 9
        assert retry.retries == 1
        assert retry.enqueued_at == later
        assert retry.payload == TeamUpdate("t1")

    def test_to_dict(self):
        payload = Task(PlayerDetail("p1", "/player/1"), priority=999, enqueued_at=T0).to_dict()
        assert payload == {
            "type": "player_detail",
            "subject_id": "p1",
            "priority": 999,
            "retries": 0,
            "enqueued_at": "2026-01-15T12:00:00",
            "player_url": "/player/1",
        }


class TestRetryPolicy:
    def test_requeue_until_budget_spent(self):
        policy = RetryPolicy(max_retries=3)
        task = _team("t1", 10)

        observed = []
        for _ in range(3):
            decision = policy.on_failure(task, RuntimeError("boom"), T0)
            assert isinstance(decision, Requeue)
            task = decision.task
            observed.append((task.priority, task.retries))

        assert observed == [(9, 1), (8, 2), (7, 3)]

        final = policy.on_failure(task, RuntimeError("still broken"), T0)
        assert isinstance(final, Drop)
        assert isinstance(final.reason, PermanentFailure)
        assert final.reason.retries == 3
        assert "still broken" in str(final.reason)

    def test_zero_retries_drops_immediately(self):
        decision = RetryPolicy(max_retries=0).on_failure(_team("t1", 5))
        assert isinstance(decision, Drop)

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
