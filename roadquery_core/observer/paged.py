"""RoadQuery Paged Observer - Subscription to a Paged Query.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Awaitable, Callable, List, Optional, TYPE_CHECKING

from roadquery_core.cache.paged import (
    NextPageParamFn,
    PageFetchFn,
    PagedQueryEntry,
    PagedState,
)
from roadquery_core.observer.base import BaseObserver, QueryKeySource
from roadquery_core.observer.options import QueryOptions

if TYPE_CHECKING:
    from roadquery_core.client.client import QueryClient


class PagedQueryObserver(BaseObserver):
    """Observer for a cursor-paginated query.

    Invalidation and staleness trigger a bounded full refresh; extending is
    only ever explicit through fetch_next_page().

    Example:
        observer = PagedQueryObserver(
            client,
            "feed",
            lambda ctx, cursor: api.feed(cursor=cursor),
            get_next_page_param=lambda last, pages: last["next_cursor"],
            options=QueryOptions(max_refetch_pages=3),
        )
        await observer.mount()
        await observer.fetch_next_page()
        observer.pages
    """

    paged = True

    def __init__(
        self,
        client: "QueryClient",
        query_key: QueryKeySource,
        fetch_page: PageFetchFn,
        get_next_page_param: NextPageParamFn,
        options: Optional[QueryOptions] = None,
        enabled: Optional[Callable[[], bool]] = None,
        context: Any = None,
    ):
        """Initialize paged observer.

        Args:
            client: Query client
            query_key: Raw key, or a function of the ambient context
            fetch_page: Called with (FetchContext, page_param); may be async
            get_next_page_param: Function(last_page, all_pages) returning the
                next parameter, or None when there are no more pages
            options: Query options; max_refetch_pages applies to the entry
                when this observer creates it
            enabled: Zero-argument predicate
            context: Ambient request data
        """
        self.fetch_page = fetch_page
        self.get_next_page_param = get_next_page_param
        super().__init__(client, query_key, options=options, enabled=enabled, context=context)

    def _initial_state(self) -> PagedState:
        return PagedState()

    def _idle(self, state: PagedState) -> PagedState:
        return replace(state, is_fetching=False, is_fetching_next_page=False)

    def _ensure_entry(self, key: str) -> PagedQueryEntry:
        return self.registry.ensure_paged_query(
            key,
            lambda: PagedQueryEntry(
                key,
                self.fetch_page,
                self.get_next_page_param,
                max_refetch_pages=self.options.max_refetch_pages,
            ),
        )

    def fetch_next_page(self) -> Optional[Awaitable[None]]:
        """Fetch and append the next page.

        Returns:
            Awaitable completing when the fetch settles, or None when not
            subscribed
        """
        if self._entry is None:
            return None
        return self._entry.fetch_next_page(self._fetch_context())

    @property
    def pages(self) -> List[Any]:
        return self._state.pages

    @property
    def page_params(self) -> List[Any]:
        return self._state.page_params

    @property
    def has_next_page(self) -> bool:
        return self._state.has_next_page

    @property
    def is_fetching_next_page(self) -> bool:
        return self._state.is_fetching_next_page

    def __repr__(self) -> str:
        return f"PagedQueryObserver(key={self.fingerprint!r}, mounted={self.mounted})"


__all__ = ["PagedQueryObserver"]
