"""RoadQuery Client - Cache-Wide Invalidation and Direct Writes.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from roadquery_core.cache.entry import FetchFn
from roadquery_core.cache.paged import NextPageParamFn, PageFetchFn
from roadquery_core.cache.registry import CacheRegistry
from roadquery_core.cache.updater import resolve_action
from roadquery_core.key.fingerprint import RawKey, fingerprint
from roadquery_core.observer.base import QueryKeySource
from roadquery_core.observer.options import QueryOptions
from roadquery_core.observer.paged import PagedQueryObserver
from roadquery_core.observer.query import QueryObserver

logger = logging.getLogger(__name__)


class QueryClient:
    """Entry point to a query cache.

    Owns the registry, hands out observers bound to it, and exposes the
    cross-cutting operations that act on entries by key. Operations that
    target a key with no live entry do nothing.

    Example:
        client = QueryClient(default_options=QueryOptions(stale_time=10.0))

        todos = client.query(["todos"], load_todos)
        await todos.mount()

        client.set_query_data(["todos"], lambda old: old + [new_todo])
        await client.invalidate_queries(["todos"])
    """

    def __init__(
        self,
        registry: Optional[CacheRegistry] = None,
        default_options: Optional[QueryOptions] = None,
    ):
        """Initialize client.

        Args:
            registry: Cache registry (default: a new one)
            default_options: Options for observers created without any
        """
        self.registry = registry or CacheRegistry()
        self.default_options = default_options or QueryOptions()

    def query(
        self,
        query_key: QueryKeySource,
        fetch_fn: FetchFn,
        options: Optional[QueryOptions] = None,
        enabled: Optional[Callable[[], bool]] = None,
        context: Any = None,
    ) -> QueryObserver:
        """Create an observer for a single-value query (not yet mounted)."""
        return QueryObserver(
            self, query_key, fetch_fn,
            options=options, enabled=enabled, context=context,
        )

    def paged_query(
        self,
        query_key: QueryKeySource,
        fetch_page: PageFetchFn,
        get_next_page_param: NextPageParamFn,
        options: Optional[QueryOptions] = None,
        enabled: Optional[Callable[[], bool]] = None,
        context: Any = None,
    ) -> PagedQueryObserver:
        """Create an observer for a paged query (not yet mounted)."""
        return PagedQueryObserver(
            self, query_key, fetch_page, get_next_page_param,
            options=options, enabled=enabled, context=context,
        )

    async def invalidate_queries(self, query_key: RawKey) -> None:
        """Make every observer of a key refetch.

        Looks in both the plain and the paged map. Returns once all
        refetches triggered by the invalidation have completed.

        Args:
            query_key: Raw key
        """
        key = fingerprint(query_key)
        entries = self.registry.find(key)
        if not entries:
            logger.debug(f"No entry to invalidate for {key!r}")
            return

        await asyncio.gather(*(entry.invalidate() for entry in entries))

    def set_query_data(self, query_key: RawKey, updater_or_value: Any) -> bool:
        """Write data directly into a live entry.

        A callable is applied to the current data; None is a no-op; any
        other value replaces the data. Pass Replace(None) to write None into
        a single-value entry; paged entries ignore None writes. Never creates
        an entry.

        Args:
            query_key: Raw key
            updater_or_value: Updater function, value, or SetDataAction

        Returns:
            True if an entry was written
        """
        key = fingerprint(query_key)
        entries = self.registry.find(key)
        if not entries:
            logger.debug(f"No entry to write for {key!r}")
            return False

        action = resolve_action(updater_or_value)
        written = False
        for entry in entries:
            written = entry.set_data(action) or written
        return written

    def get_query_data(self, query_key: RawKey) -> Any:
        """Get current data of a live entry, or None.

        The plain entry wins when both maps hold the key.
        """
        state = self.get_query_state(query_key)
        return state.data if state is not None else None

    def get_query_state(self, query_key: RawKey) -> Any:
        """Get a snapshot of a live entry, or None."""
        entries = self.registry.find(fingerprint(query_key))
        if not entries:
            return None
        return entries[0].get_current()

    def remove_queries(self, query_key: RawKey) -> int:
        """Drop entries for a key immediately, observed or not.

        Observers still holding a removed entry keep their mirrored state;
        their next subscription creates a fresh entry.

        Returns:
            Number of entries removed
        """
        return self.registry.remove(fingerprint(query_key))

    def clear(self) -> int:
        """Drop every entry.

        Returns:
            Number of entries removed
        """
        return self.registry.clear()

    def __repr__(self) -> str:
        return f"QueryClient(registry={self.registry!r})"


__all__ = ["QueryClient"]
