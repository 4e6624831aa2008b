"""RoadQuery Eviction Scheduler - Debounced Per-Key Removal Timers.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SchedulerStats:
    """Eviction scheduler statistics.

    Attributes:
        armed: Timers armed
        replaced: Timers replaced by a newer arm for the same key
        cancelled: Timers cancelled before firing
        fired: Timers that fired
    """

    armed: int = 0
    replaced: int = 0
    cancelled: int = 0
    fired: int = 0

    @property
    def pending(self) -> int:
        """Get number of timers still outstanding."""
        return self.armed - self.replaced - self.cancelled - self.fired


class EvictionScheduler:
    """Coalescing delayed-callback table keyed by any hashable timer key.

    At most one timer is outstanding per key. Arming a key that already has
    a timer cancels the old one first. Callbacks receive no guarantee about
    cache state at fire time and must re-check whatever condition made the
    removal valid.

    Timers run on the asyncio event loop, so callbacks execute on the same
    thread as every other cache mutation.

    Example:
        scheduler = EvictionScheduler()
        scheduler.arm("todos", 300.0, lambda: registry.collect("todos"))
        scheduler.cancel("todos")
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Initialize scheduler.

        Args:
            loop: Event loop to schedule on (default: the running loop)
        """
        self._loop = loop
        self._timers: Dict[Hashable, asyncio.TimerHandle] = {}
        self._stats = SchedulerStats()

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def arm(self, key: Hashable, delay: float, on_fire: Callable[[], None]) -> bool:
        """Schedule on_fire after delay seconds, replacing any pending timer.

        Args:
            key: Timer key (any hashable)
            delay: Delay in seconds (math.inf never fires)
            on_fire: Callback to run

        Returns:
            True if a timer was armed
        """
        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()
            self._stats.replaced += 1

        if math.isinf(delay):
            logger.debug(f"Infinite delay for {key!r}, not arming")
            return False

        loop = self._get_loop()
        if loop is None:
            logger.warning(f"No running event loop, eviction of {key!r} skipped")
            return False

        handle = loop.call_later(max(0.0, delay), self._fire, key, on_fire)
        self._timers[key] = handle
        self._stats.armed += 1
        logger.debug(f"Armed eviction for {key!r} in {delay}s")
        return True

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending timer for a key.

        Args:
            key: Timer key

        Returns:
            True if a timer was cancelled
        """
        handle = self._timers.pop(key, None)
        if handle is None:
            return False

        handle.cancel()
        self._stats.cancelled += 1
        logger.debug(f"Cancelled eviction for {key!r}")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending timer.

        Returns:
            Number of timers cancelled
        """
        count = 0
        for key in list(self._timers.keys()):
            if self.cancel(key):
                count += 1
        return count

    def is_armed(self, key: Hashable) -> bool:
        """Check if a key has a pending timer."""
        return key in self._timers

    def pending(self) -> List[Hashable]:
        """Get keys with pending timers."""
        return list(self._timers.keys())

    def _fire(self, key: Hashable, on_fire: Callable[[], None]) -> None:
        self._timers.pop(key, None)
        self._stats.fired += 1
        try:
            on_fire()
        except Exception as e:
            logger.error(f"Eviction callback for {key!r} failed: {e}")

    def get_stats(self) -> SchedulerStats:
        """Get scheduler statistics.

        Returns:
            SchedulerStats instance
        """
        return self._stats

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, key: Hashable) -> bool:
        return self.is_armed(key)


__all__ = ["EvictionScheduler", "SchedulerStats"]
