"""Tests for the virtual-clock scheduler."""

from datetime import timedelta

import pytest

from shared.scheduler.virtual import VirtualScheduler


def _recorder(log, label):
    async def task():
        log.append(label)

    return task


class TestScheduling:
    def test_returns_handle(self):
        scheduler = VirtualScheduler(start=10.0)
        handle = scheduler.schedule_after(5, _recorder([], "a"), name="job")
        assert handle.name == "job"
        assert handle.delay == 5.0
        assert handle.due_at == 15.0
        assert scheduler.pending == 1
        assert scheduler.next_due == 15.0

    def test_accepts_timedelta(self):
        scheduler = VirtualScheduler()
        handle = scheduler.schedule_after(timedelta(minutes=3), _recorder([], "a"))
        assert handle.delay == 180.0

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            VirtualScheduler().schedule_after(-1, _recorder([], "a"))


class TestAdvance:
    async def test_nothing_runs_before_due(self):
        log = []
        scheduler = VirtualScheduler()
        scheduler.schedule_after(10, _recorder(log, "a"))

        assert await scheduler.advance(9.9) == 0
        assert log == []
        assert await scheduler.advance(0.1) == 1
        assert log == ["a"]
        assert scheduler.now == 10.0

    async def test_runs_in_due_order_then_schedule_order(self):
        log = []
        scheduler = VirtualScheduler()
        scheduler.schedule_after(5, _recorder(log, "late"))
        scheduler.schedule_after(1, _recorder(log, "first"))
        scheduler.schedule_after(1, _recorder(log, "second"))

        await scheduler.advance(5)
        assert log == ["first", "second", "late"]

    async def test_chained_task_within_window_runs(self):
        log = []
        scheduler = VirtualScheduler()

        async def parent():
            log.append("parent")
            scheduler.schedule_after(2, _recorder(log, "child"))

        scheduler.schedule_after(1, parent)
        await scheduler.advance(3)
        assert log == ["parent", "child"]

    async def test_chained_task_beyond_window_waits(self):
        log = []
        scheduler = VirtualScheduler()

        async def parent():
            scheduler.schedule_after(5, _recorder(log, "child"))

        scheduler.schedule_after(1, parent)
        await scheduler.advance(3)
        assert log == []
        assert scheduler.next_due == 6.0

    async def test_failure_is_isolated(self):
        log = []
        scheduler = VirtualScheduler()

        async def broken():
            raise RuntimeError("boom")

        scheduler.schedule_after(1, broken, name="broken")
        scheduler.schedule_after(2, _recorder(log, "after"))

        assert await scheduler.advance(2) == 2
        assert log == ["after"]
        assert [t.name for t in scheduler.failed] == ["broken"]
        assert len(scheduler.executed) == 2

    async def test_run_all_jumps_the_clock(self):
        log = []
        scheduler = VirtualScheduler()
        scheduler.schedule_after(100, _recorder(log, "a"))
        scheduler.schedule_after(1000, _recorder(log, "b"))

        assert await scheduler.run_all() == 2
        assert log == ["a", "b"]
        assert scheduler.now == 1000.0
        assert scheduler.pending == 0
