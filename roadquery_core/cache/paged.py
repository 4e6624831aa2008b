"""RoadQuery Paged Entry - Cursor-Paginated Query Entry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A paged entry accumulates an ordered list of pages together with the page
parameter each one was fetched with. Two fetch modes exist and never overlap:

    idle ──fetch()──────────► fetching-full ──► idle
    idle ──fetch_next_page()► fetching-next ──► idle

A full refresh replays at most ``max_refetch_pages`` pages from the start
and discards anything beyond that bound. Extending fetches exactly one page
after the current last page and never replays earlier ones.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from roadquery_core.cache.entry import BaseEntry, call_fetch, completed
from roadquery_core.cache.updater import NoOp, SetDataAction, UpdateWith

logger = logging.getLogger(__name__)

PageFetchFn = Callable[[Any, Any], Any]
NextPageParamFn = Callable[[Any, List[Any]], Any]


@dataclass(frozen=True)
class PagedData:
    """Pages with the parameters used to fetch them.

    Attributes:
        pages: Page values in order
        page_params: Parameter for each page, index-aligned with pages
    """

    pages: List[Any] = field(default_factory=list)
    page_params: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class PagedState:
    """Snapshot of a paged entry.

    Attributes:
        data: PagedData, or None before the first page arrives
        error: Error of the most recent failed fetch
        is_fetching: Whether a refresh or next-page fetch is in flight
        is_pending: Whether no page has ever been populated
        updated_at: Timestamp of the last fetch completion
        has_next_page: Whether another page can be fetched
        is_fetching_next_page: Whether the in-flight fetch is an extension
    """

    data: Optional[PagedData] = None
    error: Optional[BaseException] = None
    is_fetching: bool = False
    is_pending: bool = True
    updated_at: Optional[float] = None
    has_next_page: bool = False
    is_fetching_next_page: bool = False

    @property
    def pages(self) -> List[Any]:
        """Get pages (empty before the first page)."""
        return self.data.pages if self.data is not None else []

    @property
    def page_params(self) -> List[Any]:
        """Get page parameters (empty before the first page)."""
        return self.data.page_params if self.data is not None else []

    @property
    def is_error(self) -> bool:
        """Check if the last fetch failed."""
        return self.error is not None

    @property
    def is_success(self) -> bool:
        """Check if pages are present and the last fetch did not fail."""
        return not self.is_pending and self.error is None


class PagedQueryEntry(BaseEntry):
    """Paged cache entry for one fingerprint.

    Example:
        entry = PagedQueryEntry(
            "feed",
            fetch_page=lambda ctx, cursor: api.feed(cursor),
            get_next_page_param=lambda last, pages: last.get("next"),
            max_refetch_pages=5,
        )
        await entry.fetch(ctx)            # first page
        await entry.fetch_next_page(ctx)  # second page
    """

    def __init__(
        self,
        key: str,
        fetch_page: PageFetchFn,
        get_next_page_param: NextPageParamFn,
        max_refetch_pages: Optional[int] = None,
    ):
        """Initialize paged entry.

        Args:
            key: Fingerprint
            fetch_page: Function called with (context, page_param)
            get_next_page_param: Function(last_page, all_pages) returning the
                next parameter, or None when there are no more pages
            max_refetch_pages: Replay bound for full refresh (None = unbounded)
        """
        super().__init__(key)
        self._fetch_page = fetch_page
        self._get_next_page_param = get_next_page_param
        self.max_refetch_pages = max_refetch_pages

        self.pages: List[Any] = []
        self.page_params: List[Any] = []
        self.has_next_page = False
        self.is_fetching_next_page = False
        self._has_data = False

    @property
    def has_data(self) -> bool:
        """Check if pages were ever populated."""
        return self._has_data

    @property
    def is_pending(self) -> bool:
        """Check if pages were never populated."""
        return not self._has_data

    def is_stale(self, stale_time: float) -> bool:
        """Check if pages are absent or at least stale_time seconds old."""
        if not self._has_data or self.updated_at is None:
            return True
        return time.time() - self.updated_at >= stale_time

    def get_current(self) -> PagedState:
        """Get a snapshot of the entry. Never triggers a fetch."""
        data = None
        if self._has_data:
            data = PagedData(pages=list(self.pages), page_params=list(self.page_params))

        return PagedState(
            data=data,
            error=self.error,
            is_fetching=self.is_fetching,
            is_pending=self.is_pending,
            updated_at=self.updated_at,
            has_next_page=self.has_next_page,
            is_fetching_next_page=self.is_fetching_next_page,
        )

    def _next_param(self, pages: List[Any]) -> Any:
        if not pages:
            return None
        return self._get_next_page_param(pages[-1], pages)

    def _replay_count(self) -> int:
        if self.max_refetch_pages is None:
            return len(self.pages)
        return min(len(self.pages), self.max_refetch_pages)

    def fetch(self, context: Any) -> Awaitable[None]:
        """Bootstrap the first page, or refresh existing pages.

        Joins the in-flight fetch (of either kind) if there is one.

        Args:
            context: Passed to the fetch function as-is

        Returns:
            Awaitable completing when the fetch settles
        """
        if self._in_flight is not None:
            logger.debug(f"Joining in-flight fetch for {self.key!r}")
            return self._join()

        self.is_fetching = True
        self.is_fetching_next_page = False
        self.error = None
        waiter = self._launch(self._refresh(context, self._replay_count()))
        logger.debug(f"Refreshing {self.key!r}")
        self._broadcast()
        return waiter

    def fetch_next_page(self, context: Any) -> Awaitable[None]:
        """Fetch and append the page after the current last page.

        No-op while fetching, when has_next_page is false, or before the
        first page exists.

        Args:
            context: Passed to the fetch function as-is

        Returns:
            Awaitable completing when the fetch settles
        """
        if self.is_fetching or not self.has_next_page or not self.pages:
            return completed()

        try:
            param = self._next_param(self.pages)
        except Exception as e:
            logger.error(f"Next page parameter of {self.key!r} failed: {e}")
            self.error = e
            self._broadcast()
            return completed()

        if param is None:
            self.has_next_page = False
            self._broadcast()
            return completed()

        self.is_fetching = True
        self.is_fetching_next_page = True
        self.error = None
        waiter = self._launch(self._extend(context, param))
        logger.debug(f"Fetching next page of {self.key!r} with {param!r}")
        self._broadcast()
        return waiter

    async def _refresh(self, context: Any, replay: int) -> None:
        fresh: List[Any] = []
        params: List[Any] = []
        exhausted = False

        try:
            if replay == 0:
                fresh.append(await call_fetch(self._fetch_page, context, None))
                params.append(None)
            else:
                param = None
                for index in range(replay):
                    if index > 0:
                        param = self._next_param(fresh)
                        if param is None:
                            exhausted = True
                            break
                    fresh.append(await call_fetch(self._fetch_page, context, param))
                    params.append(param)
            has_next = not exhausted and self._next_param(fresh) is not None
        except asyncio.CancelledError:
            self._settle()
            raise
        except Exception as e:
            self.error = e
            logger.debug(f"Refresh of {self.key!r} failed: {e!r}")
        else:
            dropped = len(self.pages) - len(fresh)
            if dropped > 0:
                logger.debug(f"Refresh of {self.key!r} discarded {dropped} pages")
            self.pages = fresh
            self.page_params = params
            self._has_data = True
            self.has_next_page = has_next

        self._settle()
        self.updated_at = time.time()
        self._broadcast()

    async def _extend(self, context: Any, param: Any) -> None:
        try:
            page = await call_fetch(self._fetch_page, context, param)
            pages = self.pages + [page]
            has_next = self._next_param(pages) is not None
        except asyncio.CancelledError:
            self._settle()
            raise
        except Exception as e:
            self.error = e
            logger.debug(f"Next page of {self.key!r} failed: {e!r}")
        else:
            self.pages = pages
            self.page_params = self.page_params + [param]
            self.has_next_page = has_next

        self._settle()
        self.updated_at = time.time()
        self._broadcast()

    def _settle(self) -> None:
        self.is_fetching = False
        self.is_fetching_next_page = False
        self._in_flight = None

    def set_data(self, action: SetDataAction) -> bool:
        """Write the pages list directly and broadcast.

        UpdateWith receives a copy of the current pages (None before the
        first page). None is never a page sequence: Replace(None), or an
        updater returning None, leaves the entry untouched. Any concrete
        sequence, including an empty one, replaces the pages.

        page_params keeps existing parameters for surviving indexes and pads
        new indexes with None. has_next_page is recomputed from the new last
        page.

        Args:
            action: Replace, UpdateWith or NOOP

        Returns:
            True if pages were written
        """
        if isinstance(action, NoOp):
            return False

        if isinstance(action, UpdateWith):
            value = action.fn(list(self.pages) if self._has_data else None)
        else:
            value = action.value

        if value is None:
            logger.debug(f"Ignoring None write to {self.key!r}")
            return False

        pages = list(value)
        params = self.page_params[: len(pages)]
        params.extend([None] * (len(pages) - len(params)))

        try:
            has_next = self._next_param(pages) is not None
        except Exception as e:
            logger.error(f"Next page parameter of {self.key!r} failed: {e}")
            has_next = False

        self.pages = pages
        self.page_params = params
        self.has_next_page = has_next
        self._has_data = True
        self._broadcast()
        return True

    def __repr__(self) -> str:
        return (
            f"PagedQueryEntry(key={self.key!r}, pages={len(self.pages)}, "
            f"subscribers={self.subscriber_count}, fetching={self.is_fetching})"
        )


__all__ = [
    "NextPageParamFn",
    "PageFetchFn",
    "PagedData",
    "PagedQueryEntry",
    "PagedState",
]
