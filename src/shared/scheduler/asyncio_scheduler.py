"""Event-loop scheduler: runs delayed tasks on the running asyncio loop.

Timers are ``loop.call_later`` handles; when one fires the task runs as its
own ``asyncio.Task``, detached from the request that scheduled it.
"""

import asyncio

import structlog

from shared.scheduler.port import ScheduledTask, Scheduler, TaskFactory, to_seconds

logger = structlog.get_logger(__name__)


class AsyncioScheduler(Scheduler):
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._timers: dict[object, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task] = set()

    def schedule_after(self, delay, task: TaskFactory, name: str | None = None) -> ScheduledTask:
        seconds = to_seconds(delay)
        loop = self._loop or asyncio.get_running_loop()
        task_name = name or getattr(task, "__name__", "scheduled-task")

        token = object()
        self._timers[token] = loop.call_later(seconds, self._launch, loop, token, task, task_name)

        logger.debug("Task scheduled", task=task_name, delay=seconds)
        return ScheduledTask(name=task_name, delay=seconds, due_at=loop.time() + seconds)

    def _launch(self, loop, token, task: TaskFactory, name: str) -> None:
        self._timers.pop(token, None)
        running = loop.create_task(self._run(task, name), name=name)
        self._running.add(running)
        running.add_done_callback(self._running.discard)

    async def _run(self, task: TaskFactory, name: str) -> None:
        try:
            await task()
        except asyncio.CancelledError:
            logger.info("Scheduled task cancelled", task=name)
            raise
        except Exception:
            logger.exception("Scheduled task failed", task=name)

    @property
    def pending(self) -> int:
        return len(self._timers) + len(self._running)

    async def drain(self) -> None:
        """Wait for tasks that have already started to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def shutdown(self) -> None:
        """Drop every timer that has not fired and cancel running tasks."""
        for handle in self._timers.values():
            handle.cancel()
        dropped = len(self._timers)
        self._timers.clear()
        for running in list(self._running):
            running.cancel()
        if dropped:
            logger.warning("Scheduler shut down with pending timers", dropped=dropped)
