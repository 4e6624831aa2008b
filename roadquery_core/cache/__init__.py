"""Cache module - Query entries and the registry that holds them.

This module provides the keyed entries, their direct-write actions and the
registry that owns entry lifetimes.
"""

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

__all__ = [
    "NOOP",
    "NoOp",
    "Replace",
    "SetDataAction",
    "UpdateWith",
    "resolve_action",
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
]
