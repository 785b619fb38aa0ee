"""Tests for the in-memory document store adapter."""

import asyncio

import pytest
from storefront.gateway import InMemoryDocumentStore, SubscriptionError

CART = "users/user-001/cart/current"


async def _next(subscription):
    return await asyncio.wait_for(anext(subscription), timeout=1)


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_first_snapshot_is_current_state(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe(CART)
        snapshot = await _next(subscription)
        assert snapshot.path == CART
        assert not snapshot.exists

    @pytest.mark.asyncio
    async def test_writes_fan_out_in_commit_order(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe(CART)
        await _next(subscription)

        await store.write(CART, {"items": [], "n": 1})
        await store.write(CART, {"items": [], "n": 2})

        first = await _next(subscription)
        second = await _next(subscription)
        assert first.document["n"] == 1
        assert second.document["n"] == 2
        assert first.sequence < second.sequence

    @pytest.mark.asyncio
    async def test_other_paths_are_not_delivered(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe(CART)
        await _next(subscription)
        await store.write("users/user-002/cart/current", {"items": []})
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(anext(subscription), timeout=0.05)

    @pytest.mark.asyncio
    async def test_snapshots_are_copies(self):
        store = InMemoryDocumentStore()
        await store.write(CART, {"items": []})
        snapshot = await _next(store.subscribe(CART))
        snapshot.document["items"].append("tampered")
        assert store.documents[CART] == {"items": []}

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe(CART)
        await _next(subscription)
        subscription.close()
        subscription.close()
        with pytest.raises(StopAsyncIteration):
            await anext(subscription)
        assert store.subscribers(CART) == 0

    @pytest.mark.asyncio
    async def test_broken_subscription_raises(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe(CART)
        await _next(subscription)
        store.break_subscriptions(CART, "permission-denied")
        with pytest.raises(SubscriptionError):
            await _next(subscription)


class TestWrite:
    @pytest.mark.asyncio
    async def test_successful_write(self):
        store = InMemoryDocumentStore()
        result = await store.write(CART, {"items": []})
        assert result.success
        assert result.sequence == 1
        assert store.documents[CART] == {"items": []}

    @pytest.mark.asyncio
    async def test_configured_failures(self):
        store = InMemoryDocumentStore()
        store.fail_writes(2, "deadline-exceeded")

        first = await store.write(CART, {"items": []})
        second = await store.write(CART, {"items": []})
        third = await store.write(CART, {"items": []})

        assert not first.success
        assert first.failure_kind == "deadline-exceeded"
        assert not second.success
        assert third.success
        assert len(store.calls) == 3

    @pytest.mark.asyncio
    async def test_failed_write_is_not_stored(self):
        store = InMemoryDocumentStore()
        store.fail_writes(1)
        await store.write(CART, {"items": []})
        assert CART not in store.documents


class TestListDocuments:
    @pytest.mark.asyncio
    async def test_direct_children_only(self):
        store = InMemoryDocumentStore()
        await store.write("users/user-001/history/10001", {"orderId": 10001})
        await store.write("users/user-001/history/10002", {"orderId": 10002})
        await store.write("users/user-001/history/10002/notes/a", {"text": "x"})
        await store.write(CART, {"items": []})

        documents = await store.list_documents("users/user-001/history")
        assert set(documents) == {"users/user-001/history/10001", "users/user-001/history/10002"}


class TestSubscribeCollection:
    HISTORY = "users/user-001/history"

    @pytest.mark.asyncio
    async def test_first_snapshot_lists_current_children(self):
        store = InMemoryDocumentStore()
        await store.write(f"{self.HISTORY}/10001", {"orderId": 10001})

        snapshot = await _next(store.subscribe_collection(self.HISTORY))

        assert snapshot.exists
        assert snapshot.document == {f"{self.HISTORY}/10001": {"orderId": 10001}}

    @pytest.mark.asyncio
    async def test_empty_collection_is_present(self):
        store = InMemoryDocumentStore()
        snapshot = await _next(store.subscribe_collection(self.HISTORY))
        assert snapshot.document == {}

    @pytest.mark.asyncio
    async def test_child_writes_deliver_the_whole_collection(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe_collection(self.HISTORY)
        await _next(subscription)

        await store.write(f"{self.HISTORY}/10001", {"orderId": 10001})
        await store.write(f"{self.HISTORY}/10002", {"orderId": 10002})

        await _next(subscription)
        latest = await _next(subscription)
        assert set(latest.document) == {f"{self.HISTORY}/10001", f"{self.HISTORY}/10002"}

    @pytest.mark.asyncio
    async def test_unrelated_writes_are_not_delivered(self):
        store = InMemoryDocumentStore()
        subscription = store.subscribe_collection(self.HISTORY)
        await _next(subscription)

        await store.write(CART, {"items": []})
        await store.write(f"{self.HISTORY}/10001/notes/a", {"text": "x"})

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(anext(subscription), timeout=0.05)

    @pytest.mark.asyncio
    async def test_close_and_break(self):
        store = InMemoryDocumentStore()
        broken = store.subscribe_collection(self.HISTORY)
        closed = store.subscribe_collection(self.HISTORY)
        await _next(broken)
        await _next(closed)
        assert store.subscribers(self.HISTORY) == 2

        closed.close()
        store.break_subscriptions(self.HISTORY)

        assert store.subscribers(self.HISTORY) == 1
        with pytest.raises(SubscriptionError):
            await _next(broken)
