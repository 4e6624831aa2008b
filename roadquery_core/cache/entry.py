"""RoadQuery Entry - Query Entry with Single-Flight Fetch.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, List, Optional

from roadquery_core.cache.updater import NoOp, SetDataAction, UpdateWith

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Kinds of events broadcast to entry subscribers."""

    UPDATE = auto()       # Entry state changed
    INVALIDATE = auto()   # Subscribers should refetch


@dataclass(frozen=True)
class FetchContext:
    """Context handed to a fetch function.

    Attributes:
        query_key: Raw key the data is fetched for
        context: Ambient request data, passed through unexamined
    """

    query_key: Any
    context: Any = None


@dataclass(frozen=True)
class QueryState:
    """Snapshot of a query entry.

    Attributes:
        data: Last successfully fetched value (None while absent)
        error: Error of the most recent failed fetch
        is_fetching: Whether a fetch is in flight
        is_pending: Whether data has never been populated
        updated_at: Timestamp of the last fetch completion
    """

    data: Any = None
    error: Optional[BaseException] = None
    is_fetching: bool = False
    is_pending: bool = True
    updated_at: Optional[float] = None

    @property
    def is_error(self) -> bool:
        """Check if the last fetch failed."""
        return self.error is not None

    @property
    def is_success(self) -> bool:
        """Check if data is present and the last fetch did not fail."""
        return not self.is_pending and self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "data": self.data,
            "error": repr(self.error) if self.error is not None else None,
            "is_fetching": self.is_fetching,
            "is_pending": self.is_pending,
            "is_error": self.is_error,
            "is_success": self.is_success,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class QueryEvent:
    """Event delivered to subscribers.

    Attributes:
        kind: Event kind
        state: Entry snapshot at broadcast time
    """

    kind: EventKind
    state: Any


Subscriber = Callable[[QueryEvent], Optional[Awaitable[Any]]]
FetchFn = Callable[[Any], Any]


async def call_fetch(fn: Callable[..., Any], *args: Any) -> Any:
    """Run a fetch function that may be sync or async."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class _Completed:
    """Awaitable that is already done. Needs no running event loop."""

    __slots__ = ()

    def __await__(self):
        return iter(())

    def __repr__(self) -> str:
        return "<completed>"


_COMPLETED = _Completed()


def completed() -> Awaitable[None]:
    """Get an already-completed awaitable for no-op operations."""
    return _COMPLETED


class BaseEntry:
    """Subscription, broadcast and in-flight bookkeeping shared by entries.

    Subscribers are kept in insertion order and deduplicated. Broadcasts are
    synchronous; a subscriber that raises is logged and skipped.
    """

    def __init__(self, key: str):
        """Initialize entry.

        Args:
            key: Fingerprint this entry is registered under
        """
        self.key = key
        self.error: Optional[BaseException] = None
        self.is_fetching = False
        self.updated_at: Optional[float] = None
        self.created_at = time.time()
        self.fetch_count = 0

        self._subscribers: Dict[Subscriber, None] = {}
        self._in_flight: Optional["asyncio.Task[None]"] = None

    def subscribe(self, subscriber: Subscriber) -> None:
        """Add a subscriber (idempotent)."""
        if subscriber not in self._subscribers:
            self._subscribers[subscriber] = None

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber (idempotent)."""
        self._subscribers.pop(subscriber, None)

    @property
    def subscriber_count(self) -> int:
        """Get number of subscribers."""
        return len(self._subscribers)

    @property
    def in_flight(self) -> Optional["asyncio.Task[None]"]:
        """Get the outstanding fetch task, if any."""
        return self._in_flight

    def get_current(self) -> Any:
        raise NotImplementedError

    def _join(self) -> Awaitable[None]:
        # Shielded so a cancelled waiter never cancels the shared fetch
        return asyncio.shield(self._in_flight)

    def _launch(self, coro: Awaitable[None]) -> Awaitable[None]:
        self._in_flight = asyncio.get_running_loop().create_task(coro)
        self.fetch_count += 1
        return self._join()

    def _broadcast(self, kind: EventKind = EventKind.UPDATE) -> List[Awaitable[Any]]:
        """Deliver an event to every current subscriber.

        Returns:
            Awaitables returned by subscribers
        """
        event = QueryEvent(kind=kind, state=self.get_current())
        pending: List[Awaitable[Any]] = []

        for subscriber in list(self._subscribers):
            try:
                result = subscriber(event)
            except Exception as e:
                logger.error(f"Subscriber of {self.key!r} failed on {kind.name}: {e}")
                continue
            if result is not None and inspect.isawaitable(result):
                pending.append(result)

        return pending

    def invalidate(self) -> Awaitable[Any]:
        """Ask every subscriber to refetch.

        The entry itself is not modified. With no subscribers this is a
        no-op.

        Returns:
            Awaitable completing when all triggered refetches complete
        """
        logger.debug(f"Invalidating {self.key!r} ({self.subscriber_count} subscribers)")
        pending = self._broadcast(EventKind.INVALIDATE)
        if not pending:
            return completed()
        return asyncio.gather(*pending)


class QueryEntry(BaseEntry):
    """Cached result of one fetch function for one fingerprint.

    At most one fetch runs at a time. Calls to fetch() while one is in flight
    join it instead of starting another. A failed fetch keeps the previous
    data and records the error.

    Example:
        entry = QueryEntry("todos", load_todos)
        entry.subscribe(on_event)
        await entry.fetch(FetchContext(query_key="todos"))
        entry.get_current().data
    """

    def __init__(self, key: str, fetch_fn: FetchFn):
        """Initialize query entry.

        Args:
            key: Fingerprint
            fetch_fn: Function called with the fetch context
        """
        super().__init__(key)
        self._fetch_fn = fetch_fn
        self.data: Any = None
        self._has_data = False

    @property
    def has_data(self) -> bool:
        """Check if data was ever populated."""
        return self._has_data

    @property
    def is_pending(self) -> bool:
        """Check if data was never populated."""
        return not self._has_data

    def is_stale(self, stale_time: float) -> bool:
        """Check if data is absent or at least stale_time seconds old.

        Args:
            stale_time: Freshness window in seconds

        Returns:
            True if a fetch is warranted
        """
        if not self._has_data or self.updated_at is None:
            return True
        return time.time() - self.updated_at >= stale_time

    def get_current(self) -> QueryState:
        """Get a snapshot of the entry. Never triggers a fetch."""
        return QueryState(
            data=self.data,
            error=self.error,
            is_fetching=self.is_fetching,
            is_pending=self.is_pending,
            updated_at=self.updated_at,
        )

    def fetch(self, context: Any) -> Awaitable[None]:
        """Fetch data, or join the fetch already in flight.

        Args:
            context: Passed to the fetch function as-is

        Returns:
            Awaitable completing when the fetch settles
        """
        if self._in_flight is not None:
            logger.debug(f"Joining in-flight fetch for {self.key!r}")
            return self._join()

        self.is_fetching = True
        self.error = None
        waiter = self._launch(self._run(context))
        logger.debug(f"Fetching {self.key!r}")
        self._broadcast()
        return waiter

    async def _run(self, context: Any) -> None:
        try:
            data = await call_fetch(self._fetch_fn, context)
        except asyncio.CancelledError:
            self.is_fetching = False
            self._in_flight = None
            raise
        except Exception as e:
            self.error = e
            logger.debug(f"Fetch for {self.key!r} failed: {e!r}")
        else:
            self.data = data
            self._has_data = True

        self.is_fetching = False
        self._in_flight = None
        self.updated_at = time.time()
        self._broadcast()

    def set_data(self, action: SetDataAction) -> bool:
        """Write data directly and broadcast.

        Fetch flags, error and updated_at are left untouched.

        Args:
            action: Replace, UpdateWith or NOOP

        Returns:
            True if data was written
        """
        if isinstance(action, NoOp):
            return False

        if isinstance(action, UpdateWith):
            value = action.fn(self.data if self._has_data else None)
        else:
            value = action.value

        self.data = value
        self._has_data = True
        self._broadcast()
        return True

    def __repr__(self) -> str:
        return (
            f"QueryEntry(key={self.key!r}, subscribers={self.subscriber_count}, "
            f"fetching={self.is_fetching})"
        )


__all__ = [
    "BaseEntry",
    "EventKind",
    "FetchContext",
    "FetchFn",
    "QueryEntry",
    "QueryEvent",
    "QueryState",
    "Subscriber",
    "call_fetch",
    "completed",
]
