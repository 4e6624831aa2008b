"""Tests for QueryEntry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import asyncio
import inspect
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from roadquery_core.cache.entry import EventKind, FetchContext, QueryEntry
from roadquery_core.cache.updater import NOOP, Replace, UpdateWith


def gated(*results):
    """Fetch mock that resolves each call with the next result once released."""
    gate = asyncio.Event()
    outcomes = list(results)

    async def fetch(ctx):
        await gate.wait()
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return AsyncMock(side_effect=fetch), gate


CTX = FetchContext(query_key=["t"])


class TestQueryEntryFetch:
    """Tests for single-flight fetching."""

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        """Test a successful fetch populates data."""
        fn = AsyncMock(return_value="v")
        entry = QueryEntry("t", fn)

        await entry.fetch(CTX)

        state = entry.get_current()
        assert state.data == "v"
        assert state.error is None
        assert not state.is_fetching
        assert not state.is_pending
        assert state.is_success
        assert state.updated_at is not None
        fn.assert_awaited_once_with(CTX)

    @pytest.mark.asyncio
    async def test_fetch_start_state(self):
        """Test fetch flags are set synchronously on start."""
        fn, gate = gated("v")
        entry = QueryEntry("t", fn)

        waiter = entry.fetch(CTX)
        state = entry.get_current()
        assert state.is_fetching
        assert state.is_pending
        assert state.data is None
        assert entry.in_flight is not None

        gate.set()
        await waiter
        assert entry.in_flight is None

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_call(self):
        """Test fetches while one is in flight do not call again."""
        fn, gate = gated("v")
        entry = QueryEntry("t", fn)

        first = entry.fetch(CTX)
        second = entry.fetch(CTX)
        third = entry.fetch(CTX)

        gate.set()
        await asyncio.gather(first, second, third)

        assert fn.call_count == 1
        assert entry.fetch_count == 1
        assert entry.get_current().data == "v"

    @pytest.mark.asyncio
    async def test_sequential_fetches_call_again(self):
        """Test a fetch after completion runs again."""
        fn = AsyncMock(side_effect=["a", "b"])
        entry = QueryEntry("t", fn)

        await entry.fetch(CTX)
        await entry.fetch(CTX)

        assert fn.call_count == 2
        assert entry.get_current().data == "b"

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_data(self):
        """Test a failed refresh keeps the last good value."""
        fn = AsyncMock(side_effect=["good", RuntimeError("down")])
        entry = QueryEntry("t", fn)

        await entry.fetch(CTX)
        await entry.fetch(CTX)

        state = entry.get_current()
        assert state.data == "good"
        assert isinstance(state.error, RuntimeError)
        assert state.is_error
        assert not state.is_fetching
        assert not state.is_pending

    @pytest.mark.asyncio
    async def test_failure_without_data_stays_pending(self):
        """Test a failed first fetch leaves the entry pending."""
        entry = QueryEntry("t", AsyncMock(side_effect=ValueError("bad")))

        await entry.fetch(CTX)

        state = entry.get_current()
        assert state.is_pending
        assert state.is_error
        assert not state.is_success
        assert state.updated_at is not None

    @pytest.mark.asyncio
    async def test_error_cleared_on_next_fetch(self):
        """Test error clears when the next fetch starts."""
        fn, gate = gated(RuntimeError("down"), "ok")
        entry = QueryEntry("t", fn)

        gate.set()
        await entry.fetch(CTX)
        assert entry.get_current().is_error

        gate.clear()
        waiter = entry.fetch(CTX)
        assert entry.get_current().error is None
        gate.set()
        await waiter
        assert entry.get_current().data == "ok"

    @pytest.mark.asyncio
    async def test_sync_fetch_function(self):
        """Test plain functions work as fetch functions."""
        entry = QueryEntry("t", lambda ctx: ctx.query_key)

        await entry.fetch(CTX)
        assert entry.get_current().data == ["t"]

    @pytest.mark.asyncio
    async def test_none_is_valid_data(self):
        """Test None counts as populated data."""
        entry = QueryEntry("t", AsyncMock(return_value=None))

        await entry.fetch(CTX)
        assert entry.has_data
        assert not entry.get_current().is_pending

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_fetch(self):
        """Test cancelling a waiter leaves the shared fetch running."""
        fn, gate = gated("v")
        entry = QueryEntry("t", fn)

        async def wait_for_it():
            await entry.fetch(CTX)

        waiter = asyncio.ensure_future(wait_for_it())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        gate.set()
        await entry.fetch(CTX)
        assert entry.get_current().data == "v"
        assert fn.call_count == 1


class TestQueryEntryBroadcast:
    """Tests for subscriptions and broadcasts."""

    @pytest.mark.asyncio
    async def test_broadcast_on_start_and_end(self):
        """Test subscribers see fetch start and fetch end."""
        entry = QueryEntry("t", AsyncMock(return_value="v"))
        events = []
        entry.subscribe(events.append)

        await entry.fetch(CTX)

        assert [e.kind for e in events] == [EventKind.UPDATE, EventKind.UPDATE]
        assert events[0].state.is_fetching
        assert not events[1].state.is_fetching
        assert events[1].state.data == "v"

    def test_subscribe_is_idempotent(self):
        """Test duplicate subscriptions are collapsed."""
        entry = QueryEntry("t", AsyncMock())
        subscriber = MagicMock(return_value=None)

        entry.subscribe(subscriber)
        entry.subscribe(subscriber)
        assert entry.subscriber_count == 1

        entry.unsubscribe(subscriber)
        entry.unsubscribe(subscriber)
        assert entry.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribed_sees_nothing(self):
        """Test unsubscribed callbacks receive no events."""
        entry = QueryEntry("t", AsyncMock(return_value="v"))
        subscriber = MagicMock(return_value=None)
        entry.subscribe(subscriber)
        entry.unsubscribe(subscriber)

        await entry.fetch(CTX)
        subscriber.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_contained(self):
        """Test one failing subscriber does not block others."""
        entry = QueryEntry("t", AsyncMock(return_value="v"))
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        entry.subscribe(broken)
        entry.subscribe(seen.append)

        await entry.fetch(CTX)
        assert seen[-1].state.data == "v"

    def test_get_current_never_fetches(self):
        """Test snapshots do not call the fetch function."""
        fn = AsyncMock()
        entry = QueryEntry("t", fn)

        entry.get_current()
        fn.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidate_without_subscribers(self):
        """Test invalidating an unobserved entry does nothing."""
        fn = AsyncMock(return_value="v")
        entry = QueryEntry("t", fn)

        await entry.invalidate()
        fn.assert_not_called()

    def test_invalidate_outside_event_loop(self):
        """Test a no-op invalidate needs no running loop."""
        entry = QueryEntry("t", AsyncMock())

        waiter = entry.invalidate()
        assert inspect.isawaitable(waiter)

    @pytest.mark.asyncio
    async def test_invalidate_waits_for_subscriber_refetch(self):
        """Test invalidate resolves after the refetches it triggered."""
        fn = AsyncMock(side_effect=["a", "b"])
        entry = QueryEntry("t", fn)
        await entry.fetch(CTX)

        def on_event(event):
            if event.kind is EventKind.INVALIDATE:
                return entry.fetch(CTX)
            return None

        entry.subscribe(on_event)
        await entry.invalidate()

        assert fn.call_count == 2
        assert entry.get_current().data == "b"


class TestQueryEntrySetData:
    """Tests for direct writes."""

    def test_replace(self):
        """Test Replace writes the value and broadcasts."""
        entry = QueryEntry("t", AsyncMock())
        events = []
        entry.subscribe(events.append)

        assert entry.set_data(Replace({"n": 1}))

        assert entry.get_current().data == {"n": 1}
        assert not entry.get_current().is_pending
        assert events[-1].state.data == {"n": 1}

    def test_replace_with_none(self):
        """Test Replace(None) writes None explicitly."""
        entry = QueryEntry("t", AsyncMock())
        entry.set_data(Replace("x"))

        entry.set_data(Replace(None))
        assert entry.get_current().data is None
        assert entry.has_data

    def test_update_with(self):
        """Test UpdateWith receives the current data."""
        entry = QueryEntry("t", AsyncMock())
        entry.set_data(Replace({"data": "old"}))

        entry.set_data(UpdateWith(lambda d: {**d, "data": "new"}))
        assert entry.get_current().data == {"data": "new"}

    def test_update_with_absent_data(self):
        """Test UpdateWith receives None when data is absent."""
        entry = QueryEntry("t", AsyncMock())
        received = []

        entry.set_data(UpdateWith(lambda d: received.append(d) or 1))
        assert received == [None]
        assert entry.get_current().data == 1

    def test_noop(self):
        """Test NOOP leaves data and subscribers untouched."""
        entry = QueryEntry("t", AsyncMock())
        entry.set_data(Replace("keep"))
        subscriber = MagicMock(return_value=None)
        entry.subscribe(subscriber)

        assert not entry.set_data(NOOP)
        assert entry.get_current().data == "keep"
        subscriber.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_data_leaves_fetch_fields(self):
        """Test writes do not touch is_fetching, error or updated_at."""
        fn, gate = gated("fetched")
        entry = QueryEntry("t", fn)

        waiter = entry.fetch(CTX)
        entry.set_data(Replace("written"))
        state = entry.get_current()
        assert state.is_fetching
        assert state.updated_at is None
        assert state.data == "written"

        gate.set()
        await waiter
        assert entry.get_current().data == "fetched"


class TestQueryEntryStaleness:
    """Tests for is_stale()."""

    def test_stale_without_data(self):
        """Test entries without data are always stale."""
        entry = QueryEntry("t", AsyncMock())
        assert entry.is_stale(1000)

    @pytest.mark.asyncio
    async def test_fresh_within_stale_time(self):
        """Test recently fetched data is fresh."""
        entry = QueryEntry("t", AsyncMock(return_value="v"))
        await entry.fetch(CTX)

        assert not entry.is_stale(60)
        assert entry.is_stale(0)

    @pytest.mark.asyncio
    async def test_stale_after_stale_time(self):
        """Test data becomes stale once stale_time passes."""
        entry = QueryEntry("t", AsyncMock(return_value="v"))
        await entry.fetch(CTX)
        entry.updated_at = time.time() - 10

        assert entry.is_stale(5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
