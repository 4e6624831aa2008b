"""Tests for CacheRegistry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import asyncio
import math
from unittest.mock import AsyncMock

import pytest

from roadquery_core.cache.entry import QueryEntry
from roadquery_core.cache.paged import PagedQueryEntry
from roadquery_core.cache.registry import CacheRegistry


def noop_subscriber(event):
    return None


def make_query(key):
    return QueryEntry(key, AsyncMock(return_value=key))


def make_paged(key):
    return PagedQueryEntry(key, AsyncMock(return_value=[]), lambda last, pages: None)


class TestCacheRegistry:
    """Tests for entry creation and lookup."""

    def test_ensure_creates_once(self):
        """Test ensure_query creates lazily and reuses."""
        registry = CacheRegistry()

        first = registry.ensure_query("a", lambda: make_query("a"))
        second = registry.ensure_query("a", lambda: make_query("a"))

        assert first is second
        assert registry.get_stats().created == 1

    def test_maps_are_independent(self):
        """Test plain and paged entries with one fingerprint coexist."""
        registry = CacheRegistry()

        plain = registry.ensure_query("a", lambda: make_query("a"))
        paged = registry.ensure_paged_query("a", lambda: make_paged("a"))

        assert registry.get_query("a") is plain
        assert registry.get_paged_query("a") is paged
        assert registry.find("a") == [plain, paged]
        assert len(registry) == 2
        assert registry.keys() == ["a"]

    def test_find_missing(self):
        """Test find on an unknown fingerprint."""
        registry = CacheRegistry()
        assert registry.find("missing") == []
        assert "missing" not in registry

    def test_remove(self):
        """Test remove drops entries from both maps."""
        registry = CacheRegistry()
        registry.ensure_query("a", lambda: make_query("a"))
        registry.ensure_paged_query("a", lambda: make_paged("a"))

        assert registry.remove("a") == 2
        assert "a" not in registry

    @pytest.mark.asyncio
    async def test_clear(self):
        """Test clear drops entries and pending timers."""
        registry = CacheRegistry()
        registry.ensure_query("a", lambda: make_query("a"))
        registry.ensure_query("b", lambda: make_query("b"))
        registry.release("a", 10)

        assert registry.clear() == 2
        assert len(registry) == 0
        assert registry.scheduler.pending() == []


class TestRegistryEviction:
    """Tests for delayed eviction."""

    @pytest.mark.asyncio
    async def test_evicts_after_grace_period(self):
        """Test an unobserved entry is removed after gc_time."""
        registry = CacheRegistry()
        registry.ensure_query("a", lambda: make_query("a"))

        registry.release("a", 0.02)
        assert "a" in registry

        await asyncio.sleep(0.05)
        assert "a" not in registry
        assert registry.get_stats().evicted == 1

    @pytest.mark.asyncio
    async def test_acquire_cancels_eviction(self):
        """Test re-subscribing before expiry keeps the same entry."""
        registry = CacheRegistry()
        entry = registry.ensure_query("a", lambda: make_query("a"))

        registry.release("a", 0.02)
        registry.acquire("a")
        entry.subscribe(noop_subscriber)

        await asyncio.sleep(0.05)
        assert registry.get_query("a") is entry

    @pytest.mark.asyncio
    async def test_observed_entry_survives_timer(self):
        """Test the timer re-checks the subscriber count."""
        registry = CacheRegistry()
        entry = registry.ensure_query("a", lambda: make_query("a"))

        registry.release("a", 0.01)
        entry.subscribe(noop_subscriber)

        await asyncio.sleep(0.03)
        assert registry.get_query("a") is entry

    @pytest.mark.asyncio
    async def test_recreated_entry_is_checked(self):
        """Test a replacement entry with subscribers is not removed."""
        registry = CacheRegistry()
        registry.ensure_query("a", lambda: make_query("a"))
        registry.release("a", 0.01)

        registry.remove("a")
        fresh = registry.ensure_query("a", lambda: make_query("a"))
        fresh.subscribe(noop_subscriber)
        registry.release("a", 0.01)

        await asyncio.sleep(0.03)
        assert registry.get_query("a") is fresh

    @pytest.mark.asyncio
    async def test_timers_are_per_map(self):
        """Test subscribing to one map leaves the other map's timer armed."""
        registry = CacheRegistry()
        plain = registry.ensure_query("a", lambda: make_query("a"))
        registry.release("a", 0.02)

        registry.acquire("a", paged=True)
        paged = registry.ensure_paged_query("a", lambda: make_paged("a"))
        paged.subscribe(noop_subscriber)

        assert registry.is_release_pending("a")
        assert not registry.is_release_pending("a", paged=True)

        await asyncio.sleep(0.05)
        assert registry.get_query("a") is None
        assert registry.get_paged_query("a") is paged
        assert plain.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_release_only_collects_its_map(self):
        """Test a paged timer never removes an unobserved plain entry."""
        registry = CacheRegistry()
        plain = registry.ensure_query("a", lambda: make_query("a"))
        registry.ensure_paged_query("a", lambda: make_paged("a"))

        registry.release("a", 0.01, paged=True)
        await asyncio.sleep(0.03)

        assert registry.get_paged_query("a") is None
        assert registry.get_query("a") is plain

    @pytest.mark.asyncio
    async def test_infinite_gc_time(self):
        """Test math.inf keeps entries indefinitely."""
        registry = CacheRegistry()
        registry.ensure_query("a", lambda: make_query("a"))

        assert not registry.release("a", math.inf)
        await asyncio.sleep(0.01)
        assert "a" in registry


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
