"""RoadQuery - Async Query Cache with Single-Flight Fetching.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A client-side cache for the results of asynchronous fetches with:
- Structural query keys with stable fingerprints
- Single-flight request deduplication per key
- Stale-while-revalidate refetching driven by stale_time
- Reference-counted eviction after a gc_time grace period
- Cursor-paginated accumulation with bounded refresh
- Invalidation and direct cache writes by key

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        RoadQuery System                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │ QueryClient │  │   Query     │  │   Paged     │   CALL      │
    │  │ invalidate  │  │  Observer   │  │  Observer   │   SITES     │
    │  └──────┬──────┘  └──────┬──────┘  └──────┬──────┘             │
    │         │                │                │                     │
    │  ┌──────┴────────────────┴────────────────┴──────┐             │
    │  │               Cache Registry                   │             │
    │  │   ┌────────────┐        ┌──────────────┐      │   CACHE     │
    │  │   │ QueryEntry │        │ PagedEntry   │      │   LAYER     │
    │  │   └────────────┘        └──────────────┘      │             │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │   ┌─────────────┐          ┌──────────────┐   │   SUPPORT   │
    │  │   │ Fingerprint │          │  Eviction    │   │   LAYER     │
    │  │   │             │          │  Scheduler   │   │             │
    │  │   └─────────────┘          └──────────────┘   │             │
    │  └───────────────────────────────────────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from roadquery_core import QueryClient, QueryOptions

    client = QueryClient()

    # Two call sites, one fetch
    a = client.query(["user", 1], fetch_user)
    b = client.query(["user", 1], fetch_user)
    a.mount()
    await b.mount()
    a.data == b.data

    # Paged accumulation
    feed = client.paged_query(
        "feed",
        fetch_feed_page,
        get_next_page_param=lambda last, pages: last["next_cursor"],
        options=QueryOptions(max_refetch_pages=3),
    )
    await feed.mount()
    await feed.fetch_next_page()

    # Cache-wide operations
    await client.invalidate_queries(["user", 1])
    client.set_query_data(["user", 1], lambda user: {**user, "name": "Ada"})
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from roadquery_core.key.fingerprint import (
    QueryKeyError,
    RawKey,
    fingerprint,
    is_query_key,
)
from roadquery_core.eviction.scheduler import (
    EvictionScheduler,
    SchedulerStats,
)
from roadquery_core.cache.updater import (
    NOOP,
    NoOp,
    Replace,
    SetDataAction,
    UpdateWith,
    resolve_action,
)
from roadquery_core.cache.entry import (
    EventKind,
    FetchContext,
    QueryEntry,
    QueryEvent,
    QueryState,
)
from roadquery_core.cache.paged import (
    PagedData,
    PagedQueryEntry,
    PagedState,
)
from roadquery_core.cache.registry import (
    CacheRegistry,
    RegistryStats,
)
from roadquery_core.observer.options import QueryOptions
from roadquery_core.observer.query import QueryObserver
from roadquery_core.observer.paged import PagedQueryObserver
from roadquery_core.client.client import QueryClient

__all__ = [
    # Keys
    "QueryKeyError",
    "RawKey",
    "fingerprint",
    "is_query_key",
    # Eviction
    "EvictionScheduler",
    "SchedulerStats",
    # Writes
    "NOOP",
    "NoOp",
    "Replace",
    "SetDataAction",
    "UpdateWith",
    "resolve_action",
    # Entries
    "EventKind",
    "FetchContext",
    "QueryEntry",
    "QueryEvent",
    "QueryState",
    "PagedData",
    "PagedQueryEntry",
    "PagedState",
    "CacheRegistry",
    "RegistryStats",
    # Observers
    "QueryOptions",
    "QueryObserver",
    "PagedQueryObserver",
    # Client
    "QueryClient",
]
