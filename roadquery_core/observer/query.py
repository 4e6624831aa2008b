"""RoadQuery Query Observer - Subscription to a Single-Value Query.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TYPE_CHECKING

from roadquery_core.cache.entry import FetchFn, QueryEntry, QueryState
from roadquery_core.observer.base import BaseObserver, QueryKeySource
from roadquery_core.observer.options import QueryOptions

if TYPE_CHECKING:
    from roadquery_core.client.client import QueryClient


class QueryObserver(BaseObserver):
    """Observer for a single-value query.

    Example:
        observer = QueryObserver(
            client,
            ["todo", 1],
            lambda ctx: api.get_todo(ctx.query_key[1]),
            options=QueryOptions(stale_time=30.0),
        )
        await observer.mount()
        observer.data
        observer.unmount()
    """

    def __init__(
        self,
        client: "QueryClient",
        query_key: QueryKeySource,
        fetch_fn: FetchFn,
        options: Optional[QueryOptions] = None,
        enabled: Optional[Callable[[], bool]] = None,
        context: Any = None,
    ):
        """Initialize query observer.

        Args:
            client: Query client
            query_key: Raw key, or a function of the ambient context
            fetch_fn: Called with a FetchContext; may be async
            options: Query options
            enabled: Zero-argument predicate
            context: Ambient request data
        """
        self.fetch_fn = fetch_fn
        super().__init__(client, query_key, options=options, enabled=enabled, context=context)

    def _initial_state(self) -> QueryState:
        return QueryState()

    def _ensure_entry(self, key: str) -> QueryEntry:
        return self.registry.ensure_query(key, lambda: QueryEntry(key, self.fetch_fn))

    def __repr__(self) -> str:
        return f"QueryObserver(key={self.fingerprint!r}, mounted={self.mounted})"


__all__ = ["QueryObserver"]
