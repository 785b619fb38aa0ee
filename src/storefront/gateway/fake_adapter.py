"""Configurable in-memory document store for development and testing.

Behaves like a realtime document database without any external calls:
every committed write gets the next sequence number and is fanned out to
the subscribers of that path and of its parent collection. Writes can be
made to fail, and subscriptions can be broken, to exercise retry and error
paths.
"""

import asyncio
import copy

from storefront.gateway.port import DocumentStore, Snapshot, Subscription, SubscriptionError, WriteResult

_CLOSED = object()


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


class QueueSubscription(Subscription):
    """Subscription fed through an unbounded asyncio queue."""

    def __init__(self, store: "InMemoryDocumentStore", path: str, collection: bool = False) -> None:
        self.path = path
        self.collection = collection
        self._store = store
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def deliver(self, item) -> None:
        if not self.closed:
            self._queue.put_nowait(item)

    async def __anext__(self) -> Snapshot:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, SubscriptionError):
            raise item
        return item

    def close(self) -> None:
        if self.closed:
            return
        self._queue.put_nowait(_CLOSED)
        self.closed = True
        self._store._detach(self)


class InMemoryDocumentStore(DocumentStore):
    """Configurable fake document store."""

    def __init__(self) -> None:
        self.documents: dict[str, dict] = {}
        self.sequence = 0
        self.calls: list[dict] = []
        self._failures_remaining = 0
        self._failure_kind = "unavailable"
        self._subscriptions: dict[str, list[QueueSubscription]] = {}
        self._collection_subscriptions: dict[str, list[QueueSubscription]] = {}

    def fail_writes(self, count: int, failure_kind: str = "unavailable") -> None:
        """Reject the next ``count`` writes with ``failure_kind``."""
        self._failures_remaining = count
        self._failure_kind = failure_kind

    def break_subscriptions(self, path: str, reason: str = "permission-denied") -> None:
        """Deliver a SubscriptionError to every subscriber of ``path``, document or collection."""
        for subscription in self._watchers(path):
            subscription.deliver(SubscriptionError(reason))

    def subscribers(self, path: str) -> int:
        return len(self._watchers(path))

    def subscribe(self, path: str) -> QueueSubscription:
        subscription = QueueSubscription(self, path)
        self._subscriptions.setdefault(path, []).append(subscription)
        subscription.deliver(self._snapshot(path))
        return subscription

    def subscribe_collection(self, collection_path: str) -> QueueSubscription:
        collection_path = collection_path.rstrip("/")
        subscription = QueueSubscription(self, collection_path, collection=True)
        self._collection_subscriptions.setdefault(collection_path, []).append(subscription)
        subscription.deliver(self._collection_snapshot(collection_path))
        return subscription

    async def write(self, path: str, document: dict) -> WriteResult:
        self.calls.append({"method": "write", "path": path, "document": document})

        if self._failures_remaining > 0:
            self._failures_remaining -= 1
            return WriteResult(success=False, failure_kind=self._failure_kind)

        self.sequence += 1
        self.documents[path] = copy.deepcopy(document)

        snapshot = self._snapshot(path)
        for subscription in list(self._subscriptions.get(path, [])):
            subscription.deliver(snapshot)

        collection_path = _parent(path)
        if self._collection_subscriptions.get(collection_path):
            collection_snapshot = self._collection_snapshot(collection_path)
            for subscription in list(self._collection_subscriptions[collection_path]):
                subscription.deliver(collection_snapshot)

        return WriteResult(success=True, sequence=self.sequence)

    async def list_documents(self, collection_path: str) -> dict[str, dict]:
        return self._children(collection_path)

    def _children(self, collection_path: str) -> dict[str, dict]:
        prefix = collection_path.rstrip("/") + "/"
        return {
            path: copy.deepcopy(document)
            for path, document in self.documents.items()
            if path.startswith(prefix) and "/" not in path[len(prefix) :]
        }

    def _snapshot(self, path: str) -> Snapshot:
        document = self.documents.get(path)
        if document is None:
            return Snapshot.absent(path, sequence=self.sequence)
        return Snapshot.present(path, copy.deepcopy(document), sequence=self.sequence)

    def _collection_snapshot(self, collection_path: str) -> Snapshot:
        return Snapshot.present(collection_path, self._children(collection_path), sequence=self.sequence)

    def _watchers(self, path: str) -> list[QueueSubscription]:
        path = path.rstrip("/")
        return list(self._subscriptions.get(path, [])) + list(self._collection_subscriptions.get(path, []))

    def _detach(self, subscription: QueueSubscription) -> None:
        registry = self._collection_subscriptions if subscription.collection else self._subscriptions
        subscribers = registry.get(subscription.path, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
