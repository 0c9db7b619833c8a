"""Tests for the event-loop scheduler, using short real delays."""

import asyncio

from shared.scheduler.asyncio_scheduler import AsyncioScheduler


class TestAsyncioScheduler:
    async def test_runs_after_delay(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        async def task():
            fired.set()

        scheduler.schedule_after(0.01, task, name="fire")
        assert scheduler.pending == 1

        await asyncio.wait_for(fired.wait(), timeout=1.0)
        await scheduler.drain()
        assert scheduler.pending == 0

    async def test_failure_does_not_escape(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def broken():
            done.set()
            raise RuntimeError("boom")

        scheduler.schedule_after(0, broken)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        await scheduler.drain()
        assert scheduler.pending == 0

    async def test_shutdown_drops_pending_timers(self):
        scheduler = AsyncioScheduler()
        ran = []

        async def task():
            ran.append(True)

        scheduler.schedule_after(0.05, task)
        scheduler.shutdown()
        await asyncio.sleep(0.1)

        assert ran == []
        assert scheduler.pending == 0
