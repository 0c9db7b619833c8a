"""Scheduler port: delayed, fire-once task execution.

Shipment delivery and return processing advance on their own after a fixed
delay. Domain code asks the scheduler to run a task later and moves on; it
never awaits the task and cannot cancel it.

Implementations must isolate task failures: an exception raised by a task is
logged, never propagated to whoever scheduled it.

Known limitation: the in-process implementations lose pending tasks when the
process exits. A durable delayed-job backend can implement this port instead.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

TaskFactory = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ScheduledTask:
    """Handle describing a scheduled task."""

    name: str
    delay: float
    due_at: float


def to_seconds(delay: float | timedelta) -> float:
    seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
    if seconds < 0:
        raise ValueError(f"Delay must not be negative, got {seconds}")
    return seconds


class Scheduler(ABC):
    @abstractmethod
    def schedule_after(self, delay: float | timedelta, task: TaskFactory, name: str | None = None) -> ScheduledTask:
        """Run ``task()`` once, ``delay`` seconds from now."""
        ...

    @property
    @abstractmethod
    def pending(self) -> int:
        """Number of tasks scheduled but not yet finished."""
        ...
