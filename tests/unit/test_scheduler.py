"""
Unit tests for the Scheduler.

Async behaviour is driven with asyncio.run() against fake collaborators;
the dispatch loop runs with a 10ms tick and zero rate-limit delays unless
a test says otherwise.
"""

import asyncio
import logging

import pytest

from moneyball.exceptions import ConfigurationError, TransientFetchError
from moneyball.tasks.models import (
    PlayerDetail,
    PlayerEarnings,
    Task,
    TeamUpdate,
    TournamentUpdate,
)
from moneyball.tasks.ports import EarningsResult, EntityKind, EntitySummary
from moneyball.tasks.status import RefreshStatus


def _team(team_id, priority=5, retries=0):
    return Task(TeamUpdate(team_id), priority=priority, retries=retries)


async def _wait_for(condition, timeout=1.0):
    """Yield to the loop until ``condition()`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestDispatch:
    def test_dispatch_map(self, build_scheduler, fake_extractor, fake_earnings):
        scheduler = build_scheduler()
        scheduler.add_to_queue(Task(PlayerDetail("p1", "/player/1"), priority=4))
        scheduler.add_to_queue(Task(PlayerEarnings("p2"), priority=3))
        scheduler.add_to_queue(Task(TeamUpdate("t1"), priority=2))
        scheduler.add_to_queue(Task(TournamentUpdate("e1"), priority=1))

        processed = asyncio.run(scheduler.drain())

        assert processed == 4
        assert fake_extractor.calls == [
            ("player_detail", "p1"),
            ("team_update", "t1"),
            ("tournament_update", "e1"),
        ]
        assert fake_earnings.calls == ["p2"]
        assert scheduler.active_requests == 0

    def test_process_next_on_empty_queue(self, build_scheduler):
        assert asyncio.run(build_scheduler().process_next()) is False

    def test_retry_decay_then_drop(self, build_scheduler, fake_extractor, caplog):
        scheduler = build_scheduler()
        fake_extractor.failures["t1"] = 10
        scheduler.add_to_queue(_team("t1", priority=10))

        observed = []

        async def scenario():
            for _ in range(3):
                await scheduler.process_next()
                retry = scheduler.queue.pending()[0]
                observed.append((retry.priority, retry.retries))
            with caplog.at_level(logging.ERROR):
                await scheduler.process_next()

        asyncio.run(scenario())

        assert observed == [(9, 1), (8, 2), (7, 3)]
        assert len(scheduler.queue) == 0
        assert len(fake_extractor.calls) == 4
        assert "dropped after 3 retries" in caplog.text

    def test_requeued_task_waits_behind_higher_priority(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler()
        fake_extractor.failures["flaky"] = 1
        scheduler.add_to_queue(_team("flaky", priority=10))
        scheduler.add_to_queue(_team("steady", priority=10))

        asyncio.run(scheduler.drain())

        assert [call[1] for call in fake_extractor.calls] == ["flaky", "steady", "flaky"]

    def test_unsuccessful_earnings_not_retried(self, build_scheduler, fake_earnings, caplog):
        scheduler = build_scheduler()
        fake_earnings.results["p1"] = EarningsResult(success=False, error="No Liquipedia page found")
        scheduler.add_to_queue(Task(PlayerEarnings("p1"), priority=100))

        with caplog.at_level(logging.WARNING):
            asyncio.run(scheduler.drain())

        assert fake_earnings.calls == ["p1"]
        assert len(scheduler.queue) == 0
        assert "{'success': False, 'error': 'No Liquipedia page found'}" in caplog.text

    def test_earnings_exception_is_retried(self, build_scheduler, fake_earnings):
        scheduler = build_scheduler()
        fake_earnings.errors["p1"] = TransientFetchError("timeout")
        scheduler.add_to_queue(Task(PlayerEarnings("p1"), priority=100))

        asyncio.run(scheduler.process_next())

        (retry,) = scheduler.queue.pending()
        assert retry.priority == 99
        assert retry.retries == 1


class TestCoolDown:
    def test_cool_down_by_rate_class(self, build_scheduler, clock):
        scheduler = build_scheduler(rate_limit_general_seconds=2.0, rate_limit_heavy_seconds=30.0)
        scheduler.add_to_queue(_team("t1", priority=2))
        scheduler.add_to_queue(Task(PlayerEarnings("p1"), priority=1))

        asyncio.run(scheduler.drain())

        assert clock.sleeps == [2.0, 30.0]

    def test_no_cool_down_after_requeue(self, build_scheduler, fake_extractor, clock):
        scheduler = build_scheduler(rate_limit_general_seconds=2.0)
        fake_extractor.failures["t1"] = 1
        scheduler.add_to_queue(_team("t1"))

        asyncio.run(scheduler.process_next())
        assert clock.sleeps == []

        asyncio.run(scheduler.process_next())
        assert clock.sleeps == [2.0]

    def test_cool_down_after_drop(self, build_scheduler, fake_extractor, clock):
        scheduler = build_scheduler(rate_limit_general_seconds=2.0)
        fake_extractor.failures["t1"] = 1
        scheduler.add_to_queue(_team("t1", retries=3))

        asyncio.run(scheduler.process_next())

        assert len(scheduler.queue) == 0
        assert clock.sleeps == [2.0]


class TestLifecycle:
    def test_init_requires_running_loop(self, build_scheduler):
        with pytest.raises(RuntimeError):
            build_scheduler().init()

    def test_loop_dispatches_queued_work(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler()

        async def scenario():
            scheduler.init()
            scheduler.add_to_queue(_team("t1"))
            scheduler.add_to_queue(_team("t2"))
            await _wait_for(lambda: len(fake_extractor.calls) == 2)
            status = scheduler.get_queue_status()
            scheduler.stop()
            return status

        status = asyncio.run(scenario())
        assert status["is_running"] is True
        assert len(scheduler.cron_jobs) == 0

    def test_concurrency_bound(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler(scheduler_max_concurrent_requests=2)
        for name in ("a", "b", "c"):
            scheduler.add_to_queue(_team(name))

        async def scenario():
            fake_extractor.gate = asyncio.Event()
            scheduler.init()
            await _wait_for(lambda: scheduler.active_requests == 2)
            # Several more ticks with both slots busy
            await asyncio.sleep(0.05)
            blocked = (scheduler.active_requests, len(scheduler.queue))
            fake_extractor.gate.set()
            await _wait_for(lambda: len(fake_extractor.calls) == 3 and scheduler.active_requests == 0)
            scheduler.stop()
            return blocked

        blocked = asyncio.run(scenario())
        assert blocked == (2, 1)
        assert fake_extractor.max_active == 2

    def test_stop_semantics(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler()
        fake_extractor.failures["a"] = 1
        for name in ("a", "b", "c"):
            scheduler.add_to_queue(_team(name))

        async def scenario():
            fake_extractor.gate = asyncio.Event()
            scheduler.init()
            await _wait_for(lambda: scheduler.active_requests == 1)
            scheduler.stop()
            stopped = (len(scheduler.queue), scheduler.active_requests, scheduler.is_running)
            scheduler.add_to_queue(_team("late"))

            # The in-flight task now fails; it must not requeue or touch counters
            fake_extractor.gate.set()
            await asyncio.sleep(0.1)
            return stopped

        stopped = asyncio.run(scenario())
        assert stopped == (0, 0, False)
        assert fake_extractor.calls == [("team_update", "a")]
        # Work queued after stop() waits for the next init() or drain()
        assert [task.subject_id for task in scheduler.queue.pending()] == ["late"]
        assert scheduler.active_requests == 0
        assert scheduler.is_running is False

    def test_tick_spawned_before_stop_does_not_dispatch(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler()

        async def scenario():
            scheduler.init()
            scheduler.add_to_queue(_team("before"))
            # One loop turn: the tick sees work and spawns a dispatch that has not run yet
            await asyncio.sleep(0)
            scheduler.stop()
            scheduler.add_to_queue(_team("after-stop"))
            await asyncio.sleep(0.1)
            stopped_calls = list(fake_extractor.calls)

            processed = await scheduler.drain()
            return stopped_calls, processed

        stopped_calls, processed = asyncio.run(scenario())
        assert stopped_calls == []
        assert processed == 1
        assert fake_extractor.calls == [("team_update", "after-stop")]

    def test_double_init_registers_triggers_twice(self, build_scheduler, caplog):
        scheduler = build_scheduler()

        async def scenario():
            scheduler.init()
            with caplog.at_level(logging.WARNING):
                scheduler.init()
            count = len(scheduler.cron_jobs)
            scheduler.stop()
            return count

        assert asyncio.run(scenario()) == 10
        assert "called again" in caplog.text

    def test_strict_double_init_raises(self, build_scheduler):
        scheduler = build_scheduler(scheduler_strict_init=True)

        async def scenario():
            scheduler.init()
            try:
                with pytest.raises(ConfigurationError):
                    scheduler.init()
                return len(scheduler.cron_jobs)
            finally:
                scheduler.stop()

        assert asyncio.run(scenario()) == 5

    def test_init_after_stop_is_clean(self, build_scheduler, caplog):
        scheduler = build_scheduler()

        async def scenario():
            scheduler.init()
            scheduler.stop()
            with caplog.at_level(logging.WARNING):
                scheduler.init()
            count = len(scheduler.cron_jobs)
            scheduler.stop()
            return count

        assert asyncio.run(scenario()) == 5
        assert "called again" not in caplog.text


class TestStatus:
    def test_status_accuracy(self, build_scheduler):
        scheduler = build_scheduler()
        for i in range(4):
            scheduler.add_to_queue(_team(f"t{i}", priority=5))
        scheduler.add_to_queue(Task(PlayerEarnings("p1"), priority=99.9))

        assert scheduler.get_queue_status() == {
            "queue_length": 5,
            "active_requests": 0,
            "is_running": False,
            "priority_distribution": {"99.9": 1, "5": 4},
        }

    def test_get_status_object(self, build_scheduler):
        scheduler = build_scheduler()
        scheduler.add_to_queue(_team("t1"))

        status = scheduler.get_status()
        assert status.queue_length == 1
        assert status.is_running is False


class TestManualOperations:
    def test_update_missing_player(self, build_scheduler):
        scheduler = build_scheduler()
        scheduler.add_to_queue(_team("t1"))

        result = scheduler.update_player_details("ghost")

        assert result == {"success": False, "error": "Player not found: ghost"}
        assert len(scheduler.queue) == 1

    def test_update_player_lookup_error(self, build_scheduler, fake_repository, caplog):
        scheduler = build_scheduler()
        fake_repository.error = RuntimeError("database unavailable")

        with caplog.at_level(logging.ERROR):
            result = scheduler.update_player_details("p1")

        assert result == {"success": False, "error": "database unavailable"}
        assert len(scheduler.queue) == 0
        assert "Error looking up player p1" in caplog.text

    def test_update_known_player(self, build_scheduler, fake_repository, clock):
        scheduler = build_scheduler()
        fake_repository.add_player("p1", division="T2", source_url="/player/9/tenz")
        fake_repository.add_player("p2")

        assert scheduler.update_player_details("p1") == {
            "success": True,
            "message": "Player update scheduled",
        }
        scheduler.update_player_details("p2")

        first, second = scheduler.queue.pending()
        assert first.priority == 999
        assert first.payload == PlayerDetail("p1", "/player/9/tenz")
        assert first.enqueued_at == clock.now()
        assert second.payload == PlayerDetail("p2", "/player/p2")

    def test_earnings_batch_priority(self, build_scheduler, fake_repository):
        scheduler = build_scheduler()
        fake_repository.stale[EntityKind.PLAYER] = [
            EntitySummary("p1", division="T1", rating=1.4),
            EntitySummary("p2", division="T1", rating=1.2),
        ]

        result = scheduler.queue_earnings_updates()

        assert result == {"success": True, "queued_players": 2, "divisions": ["T1", "T2"]}
        assert [(t.subject_id, t.priority) for t in scheduler.queue.pending()] == [("p1", 100), ("p2", 99.9)]

    def test_full_refresh_runs_outside_queue(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler()
        fake_extractor.refresh_result = 250

        async def scenario():
            result = scheduler.trigger_full_refresh(pages=3, detailed=False)
            (job,) = scheduler.refresh_jobs()
            await _wait_for(lambda: job.done)
            return result, job

        result, job = asyncio.run(scenario())

        assert result == {
            "success": True,
            "message": "Full data refresh scheduled (3 pages, detailed: false)",
        }
        assert job.status is RefreshStatus.COMPLETED
        assert job.players_scraped == 250
        assert fake_extractor.calls == [("scrape_all_players", 3, False)]
        assert len(scheduler.queue) == 0

    def test_full_refresh_default_message(self, build_scheduler):
        scheduler = build_scheduler()

        async def scenario():
            return scheduler.trigger_full_refresh()

        assert asyncio.run(scenario())["message"] == "Full data refresh scheduled (5 pages, detailed: true)"

    def test_full_refresh_failure_recorded(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler()
        fake_extractor.refresh_error = TransientFetchError("vlr down")

        async def scenario():
            scheduler.trigger_full_refresh(pages=1)
            (job,) = scheduler.refresh_jobs()
            await _wait_for(lambda: job.done)
            return job

        job = asyncio.run(scenario())
        assert job.status is RefreshStatus.FAILED
        assert job.error == "vlr down"
        assert job.to_dict()["status"] == "failed"

    def test_finished_refresh_jobs_are_capped(self, build_scheduler, fake_extractor):
        scheduler = build_scheduler(refresh_job_history=2)

        async def scenario():
            for pages in (1, 2, 3):
                scheduler.trigger_full_refresh(pages=pages)
                await _wait_for(lambda: all(job.done for job in scheduler.refresh_jobs()))

            # A running job is kept even when the history is full
            fake_extractor.refresh_gate = asyncio.Event()
            scheduler.trigger_full_refresh(pages=4)
            await asyncio.sleep(0.01)
            running = [job.pages for job in scheduler.refresh_jobs()]
            fake_extractor.refresh_gate.set()
            await _wait_for(lambda: all(job.done for job in scheduler.refresh_jobs()))
            return running

        running = asyncio.run(scenario())
        assert running == [2, 3, 4]
        assert [job.pages for job in scheduler.refresh_jobs()] == [3, 4]

    def test_run_trigger(self, build_scheduler, fake_repository):
        scheduler = build_scheduler()
        fake_repository.stale[EntityKind.TEAM] = [EntitySummary("t1"), EntitySummary("t2")]

        assert asyncio.run(scheduler.run_trigger("team_update")) == 2
        assert len(scheduler.queue) == 2

        with pytest.raises(KeyError):
            asyncio.run(scheduler.run_trigger("nope"))
