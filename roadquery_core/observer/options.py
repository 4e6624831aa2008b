"""RoadQuery Options - Per-Subscription Query Configuration.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

DEFAULT_GC_TIME = 5 * 60.0


@dataclass(frozen=True)
class QueryOptions:
    """Configuration for a query subscription.

    Attributes:
        stale_time: Seconds data stays fresh enough to skip fetching
        gc_time: Seconds an unobserved entry survives before eviction
            (math.inf keeps it for the life of the registry)
        max_refetch_pages: Replay bound for paged refresh (None = unbounded)
        refetch_on_show: Whether visibility signals trigger a staleness check
    """

    stale_time: float = 0.0
    gc_time: float = DEFAULT_GC_TIME
    max_refetch_pages: Optional[int] = None
    refetch_on_show: bool = False

    def __post_init__(self):
        """Validate options."""
        if self.stale_time < 0:
            raise ValueError(f"stale_time must be >= 0, got {self.stale_time}")
        if self.gc_time < 0:
            raise ValueError(f"gc_time must be >= 0, got {self.gc_time}")
        if self.max_refetch_pages is not None and self.max_refetch_pages < 1:
            raise ValueError(
                f"max_refetch_pages must be >= 1, got {self.max_refetch_pages}"
            )

    def merge(self, **overrides: Any) -> "QueryOptions":
        """Get a copy with some fields overridden.

        Args:
            **overrides: Fields to change

        Returns:
            New QueryOptions
        """
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "stale_time": self.stale_time,
            "gc_time": self.gc_time,
            "max_refetch_pages": self.max_refetch_pages,
            "refetch_on_show": self.refetch_on_show,
        }


__all__ = ["DEFAULT_GC_TIME", "QueryOptions"]
