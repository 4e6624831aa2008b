"""RoadQuery Observer Base - Per-Call-Site Subscription Handle.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, List, Optional, TYPE_CHECKING, Union

from roadquery_core.cache.entry import EventKind, FetchContext, QueryEvent
from roadquery_core.key.fingerprint import RawKey, fingerprint
from roadquery_core.observer.options import QueryOptions

if TYPE_CHECKING:
    from roadquery_core.cache.registry import CacheRegistry
    from roadquery_core.client.client import QueryClient

logger = logging.getLogger(__name__)

QueryKeySource = Union[RawKey, Callable[[Any], RawKey]]
Listener = Callable[[Any], None]


class BaseObserver:
    """Subscribes one call site to the entry for its current key.

    The observer mirrors the entry's broadcasts into local state, decides at
    subscribe time whether a fetch is warranted, and follows key and
    enabled-condition changes. The binding layer calls evaluate() whenever
    the key, the enabled predicate or the ambient context may have changed.

    Subclasses provide the entry kind via _ensure_entry() and the initial
    local state via _initial_state().
    """

    paged = False

    def __init__(
        self,
        client: "QueryClient",
        query_key: QueryKeySource,
        options: Optional[QueryOptions] = None,
        enabled: Optional[Callable[[], bool]] = None,
        context: Any = None,
    ):
        """Initialize observer.

        Args:
            client: Query client owning the registry
            query_key: Raw key, or a function of the ambient context
            options: Query options (default: the client's defaults)
            enabled: Zero-argument predicate (default: always enabled)
            context: Ambient request data passed through to fetches
        """
        self.client = client
        self.options = options or client.default_options
        self.context = context
        self.mounted = False

        self._query_key = query_key
        self._enabled = enabled
        self._raw_key: Any = None
        self._fingerprint: Optional[str] = None
        self._entry: Any = None
        self._state = self._initial_state()
        self._listeners: List[Listener] = []

    @property
    def registry(self) -> "CacheRegistry":
        """Get the registry entries live in."""
        return self.client.registry

    def _initial_state(self) -> Any:
        raise NotImplementedError

    def _ensure_entry(self, key: str) -> Any:
        raise NotImplementedError

    def _idle(self, state: Any) -> Any:
        return replace(state, is_fetching=False)

    # Key and enabled resolution

    def resolve_key(self) -> RawKey:
        """Get the raw key for the current context."""
        if callable(self._query_key):
            return self._query_key(self.context)
        return self._query_key

    def is_enabled(self) -> bool:
        """Evaluate the enabled predicate."""
        if self._enabled is None:
            return True
        return bool(self._enabled())

    # Lifecycle

    def mount(self) -> Optional[Awaitable[None]]:
        """Start observing.

        Returns:
            Awaitable of the fetch started, or None
        """
        self.mounted = True
        return self.evaluate()

    def evaluate(self) -> Optional[Awaitable[None]]:
        """Re-check key, enabled condition and staleness.

        Moves the subscription if the key changed, drops it if disabled,
        and fetches when the subscribed entry is stale.

        Returns:
            Awaitable of the fetch started or joined, or None
        """
        raw_key = self.resolve_key()
        key = fingerprint(raw_key)
        target = key if self.is_enabled() else None

        if self._fingerprint is not None and self._fingerprint != target:
            self._detach()

        self._raw_key = raw_key

        if target is None:
            self._mirror(self._idle(self._state))
            return None

        if self._entry is None:
            self._attach(key)

        if not self._entry.is_stale(self.options.stale_time):
            logger.debug(f"{key!r} is fresh, skipping fetch")
            return None

        return self._entry.fetch(self._fetch_context())

    def set_key(self, query_key: QueryKeySource) -> Optional[Awaitable[None]]:
        """Replace the key and re-evaluate if mounted."""
        self._query_key = query_key
        if not self.mounted:
            return None
        return self.evaluate()

    def set_context(self, context: Any) -> Optional[Awaitable[None]]:
        """Replace the ambient context and re-evaluate if mounted."""
        self.context = context
        if not self.mounted:
            return None
        return self.evaluate()

    def on_show(self) -> Optional[Awaitable[None]]:
        """Handle a visibility signal.

        Triggers a staleness check only when refetch_on_show is set.
        """
        if not self.mounted or not self.options.refetch_on_show:
            return None
        return self.evaluate()

    def refetch(self) -> Optional[Awaitable[None]]:
        """Fetch the current entry regardless of staleness."""
        if self._entry is None:
            return None
        return self._entry.fetch(self._fetch_context())

    def unmount(self) -> None:
        """Stop observing and arm eviction of an unobserved entry."""
        self.mounted = False
        if self._entry is not None:
            self._detach()

    # Subscription plumbing

    def _attach(self, key: str) -> None:
        self.registry.acquire(key, paged=self.paged)
        entry = self._ensure_entry(key)
        entry.subscribe(self._on_event)
        self._entry = entry
        self._fingerprint = key
        logger.debug(f"Subscribed to {key!r}")
        self._mirror(entry.get_current())

    def _detach(self) -> None:
        entry, key = self._entry, self._fingerprint
        self._entry = None
        self._fingerprint = None

        entry.unsubscribe(self._on_event)
        logger.debug(f"Unsubscribed from {key!r}")
        if entry.subscriber_count == 0:
            self.registry.release(key, self.options.gc_time, paged=self.paged)

    def _fetch_context(self) -> FetchContext:
        return FetchContext(query_key=self._raw_key, context=self.context)

    def _on_event(self, event: QueryEvent) -> Optional[Awaitable[None]]:
        if event.kind is EventKind.INVALIDATE:
            return self.refetch()
        self._mirror(event.state)
        return None

    def _mirror(self, state: Any) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Listener failed for {self._fingerprint!r}: {e}")

    # Local observable

    def add_listener(self, listener: Listener) -> None:
        """Register a callback receiving each mirrored snapshot."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        """Unregister a snapshot callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def result(self) -> Any:
        """Get the mirrored snapshot."""
        return self._state

    @property
    def fingerprint(self) -> Optional[str]:
        """Get the fingerprint currently subscribed to."""
        return self._fingerprint

    @property
    def entry(self) -> Any:
        """Get the entry currently subscribed to."""
        return self._entry

    @property
    def data(self) -> Any:
        return self._state.data

    @property
    def error(self) -> Optional[BaseException]:
        return self._state.error

    @property
    def is_fetching(self) -> bool:
        return self._state.is_fetching

    @property
    def is_pending(self) -> bool:
        return self._state.is_pending

    @property
    def is_error(self) -> bool:
        return self._state.is_error

    @property
    def is_success(self) -> bool:
        return self._state.is_success

    @property
    def updated_at(self) -> Optional[float]:
        return self._state.updated_at

    def __enter__(self):
        self.mount()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unmount()


__all__ = ["BaseObserver", "Listener", "QueryKeySource"]
