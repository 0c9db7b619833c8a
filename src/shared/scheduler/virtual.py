"""Virtual-clock scheduler: deterministic delayed tasks for tests.

Nothing runs until ``advance()`` moves the clock. Tasks fire in due-time
order (ties in scheduling order), and tasks scheduled by a running task are
picked up in the same ``advance()`` call if they fall due before its end.
"""

import heapq
import itertools
from dataclasses import dataclass, field

import structlog

from shared.scheduler.port import ScheduledTask, Scheduler, TaskFactory, to_seconds

logger = structlog.get_logger(__name__)


@dataclass(order=True)
class _Entry:
    due_at: float
    seq: int
    name: str = field(compare=False)
    delay: float = field(compare=False)
    task: TaskFactory = field(compare=False)


class VirtualScheduler(Scheduler):
    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue: list[_Entry] = []
        self._seq = itertools.count()
        self.executed: list[ScheduledTask] = []
        self.failed: list[ScheduledTask] = []

    def schedule_after(self, delay, task: TaskFactory, name: str | None = None) -> ScheduledTask:
        seconds = to_seconds(delay)
        task_name = name or getattr(task, "__name__", "scheduled-task")
        entry = _Entry(self.now + seconds, next(self._seq), task_name, seconds, task)
        heapq.heappush(self._queue, entry)
        return ScheduledTask(name=task_name, delay=seconds, due_at=entry.due_at)

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def next_due(self) -> float | None:
        return self._queue[0].due_at if self._queue else None

    async def advance(self, seconds: float) -> int:
        """Move the clock forward, running every task that falls due. Returns the count run."""
        target = self.now + to_seconds(seconds)
        ran = 0
        while self._queue and self._queue[0].due_at <= target:
            entry = heapq.heappop(self._queue)
            self.now = entry.due_at
            await self._run(entry)
            ran += 1
        self.now = target
        return ran

    async def run_all(self, limit: int = 1000) -> int:
        """Run tasks until none remain, jumping the clock as needed."""
        ran = 0
        while self._queue and ran < limit:
            ran += await self.advance(self._queue[0].due_at - self.now)
        return ran

    async def _run(self, entry: _Entry) -> None:
        handle = ScheduledTask(name=entry.name, delay=entry.delay, due_at=entry.due_at)
        try:
            await entry.task()
        except Exception:
            logger.exception("Scheduled task failed", task=entry.name)
            self.failed.append(handle)
        self.executed.append(handle)
