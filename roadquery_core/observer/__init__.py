"""Observer module - Per-call-site subscriptions to cache entries."""

from roadquery_core.observer.options import (
    DEFAULT_GC_TIME,
    QueryOptions,
)
from roadquery_core.observer.base import BaseObserver
from roadquery_core.observer.query import QueryObserver
from roadquery_core.observer.paged import PagedQueryObserver

__all__ = [
    "DEFAULT_GC_TIME",
    "QueryOptions",
    "BaseObserver",
    "QueryObserver",
    "PagedQueryObserver",
]
