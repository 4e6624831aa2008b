"""Eviction module - Delayed removal of unobserved cache entries."""

from roadquery_core.eviction.scheduler import (
    EvictionScheduler,
    SchedulerStats,
)

__all__ = [
    "EvictionScheduler",
    "SchedulerStats",
]
