"""Delayed-task scheduling: pluggable scheduler implementations."""

from shared.scheduler.asyncio_scheduler import AsyncioScheduler
from shared.scheduler.port import ScheduledTask, Scheduler, TaskFactory
from shared.scheduler.virtual import VirtualScheduler

__all__ = ["AsyncioScheduler", "ScheduledTask", "Scheduler", "TaskFactory", "VirtualScheduler"]
