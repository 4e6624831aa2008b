"""RoadQuery Registry - Fingerprint to Entry Registry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from roadquery_core.cache.entry import QueryEntry
from roadquery_core.cache.paged import PagedQueryEntry
from roadquery_core.eviction.scheduler import EvictionScheduler

logger = logging.getLogger(__name__)

AnyEntry = Union[QueryEntry, PagedQueryEntry]


@dataclass
class RegistryStats:
    """Registry statistics.

    Attributes:
        created: Entries created
        evicted: Entries removed by the eviction scheduler
        removed: Entries removed explicitly
        entry_count: Current entry count across both maps
        started_at: When the registry was created
    """

    created: int = 0
    evicted: int = 0
    removed: int = 0
    entry_count: int = 0
    started_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "created": self.created,
            "evicted": self.evicted,
            "removed": self.removed,
            "entry_count": self.entry_count,
        }


class CacheRegistry:
    """Holds every live query entry.

    Two independent maps, one for plain entries and one for paged entries,
    both keyed by fingerprint. Entries are created lazily on first subscribe
    and removed once they have gone unobserved for their grace period.
    Each entry has its own removal timer, keyed by map and fingerprint.

    Registries are plain objects: create one per isolated cache. A registry
    lives as long as the process keeps a reference to it.

    Example:
        registry = CacheRegistry()
        entry = registry.ensure_query(fp, lambda: QueryEntry(fp, load))
        ...
        registry.release(fp, gc_time=300.0)
    """

    def __init__(self, scheduler: Optional[EvictionScheduler] = None):
        """Initialize registry.

        Args:
            scheduler: Eviction scheduler (default: a new one)
        """
        self.scheduler = scheduler or EvictionScheduler()
        self.queries: Dict[str, QueryEntry] = {}
        self.paged_queries: Dict[str, PagedQueryEntry] = {}
        self._stats = RegistryStats(started_at=datetime.now())

    def get_query(self, key: str) -> Optional[QueryEntry]:
        """Get a plain entry by fingerprint."""
        return self.queries.get(key)

    def get_paged_query(self, key: str) -> Optional[PagedQueryEntry]:
        """Get a paged entry by fingerprint."""
        return self.paged_queries.get(key)

    def find(self, key: str) -> List[AnyEntry]:
        """Get live entries for a fingerprint from both maps.

        Args:
            key: Fingerprint

        Returns:
            Entries found (plain first, then paged)
        """
        found: List[AnyEntry] = []
        if key in self.queries:
            found.append(self.queries[key])
        if key in self.paged_queries:
            found.append(self.paged_queries[key])
        return found

    def ensure_query(self, key: str, factory: Callable[[], QueryEntry]) -> QueryEntry:
        """Get the plain entry for a fingerprint, creating it if absent.

        Args:
            key: Fingerprint
            factory: Builds the entry when missing

        Returns:
            QueryEntry
        """
        entry = self.queries.get(key)
        if entry is None:
            entry = factory()
            self.queries[key] = entry
            self._stats.created += 1
            logger.debug(f"Created query entry {key!r}")
        return entry

    def ensure_paged_query(
        self,
        key: str,
        factory: Callable[[], PagedQueryEntry],
    ) -> PagedQueryEntry:
        """Get the paged entry for a fingerprint, creating it if absent.

        Args:
            key: Fingerprint
            factory: Builds the entry when missing

        Returns:
            PagedQueryEntry
        """
        entry = self.paged_queries.get(key)
        if entry is None:
            entry = factory()
            self.paged_queries[key] = entry
            self._stats.created += 1
            logger.debug(f"Created paged query entry {key!r}")
        return entry

    @staticmethod
    def _timer_key(key: str, paged: bool) -> Tuple[str, str]:
        return ("paged" if paged else "query", key)

    def _map(self, paged: bool) -> Dict[str, Any]:
        return self.paged_queries if paged else self.queries

    def acquire(self, key: str, paged: bool = False) -> None:
        """Cancel pending removal of an entry being subscribed to.

        Args:
            key: Fingerprint
            paged: Whether the entry lives in the paged map
        """
        self.scheduler.cancel(self._timer_key(key, paged))

    def release(self, key: str, gc_time: float, paged: bool = False) -> bool:
        """Arm removal of an entry after gc_time seconds.

        Timers are kept per map, so releasing the plain entry for a
        fingerprint never touches the paged entry for it and vice versa.

        Args:
            key: Fingerprint
            gc_time: Grace period in seconds
            paged: Whether the entry lives in the paged map

        Returns:
            True if a removal timer was armed
        """
        return self.scheduler.arm(
            self._timer_key(key, paged),
            gc_time,
            lambda: self.collect(key, paged=paged),
        )

    def is_release_pending(self, key: str, paged: bool = False) -> bool:
        """Check if an entry has a removal timer armed."""
        return self.scheduler.is_armed(self._timer_key(key, paged))

    def collect(self, key: str, paged: bool = False) -> int:
        """Remove an entry if it has no subscribers.

        Args:
            key: Fingerprint
            paged: Whether the entry lives in the paged map

        Returns:
            Number of entries removed (0 or 1)
        """
        mapping = self._map(paged)
        entry = mapping.get(key)
        if entry is None or entry.subscriber_count > 0:
            return 0

        del mapping[key]
        self._stats.evicted += 1
        logger.info(f"Evicted unobserved {'paged ' if paged else ''}entry {key!r}")
        return 1

    def remove(self, key: str) -> int:
        """Remove entries for a fingerprint regardless of subscribers.

        Args:
            key: Fingerprint

        Returns:
            Number of entries removed
        """
        count = 0
        for paged in (False, True):
            if self._map(paged).pop(key, None) is not None:
                count += 1
            self.scheduler.cancel(self._timer_key(key, paged))
        self._stats.removed += count
        return count

    def clear(self) -> int:
        """Remove every entry and cancel every pending removal.

        Returns:
            Number of entries cleared
        """
        count = len(self)
        self.queries.clear()
        self.paged_queries.clear()
        self.scheduler.cancel_all()
        logger.info(f"Registry cleared ({count} entries)")
        return count

    def keys(self) -> List[str]:
        """Get fingerprints of all live entries."""
        return list(dict.fromkeys([*self.queries, *self.paged_queries]))

    def get_stats(self) -> RegistryStats:
        """Get registry statistics.

        Returns:
            RegistryStats instance
        """
        self._stats.entry_count = len(self)
        return self._stats

    def __len__(self) -> int:
        return len(self.queries) + len(self.paged_queries)

    def __contains__(self, key: str) -> bool:
        return key in self.queries or key in self.paged_queries

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return (
            f"CacheRegistry(queries={len(self.queries)}, "
            f"paged_queries={len(self.paged_queries)})"
        )


__all__ = ["CacheRegistry", "RegistryStats"]
