"""Document store port (abstract interface).

Defines the contract a realtime document store adapter must implement.
Swapping the in-memory store (dev/test) for a hosted document database
happens here, without changing any domain or session code.

Paths are slash-separated logical keys (``users/u-1/cart/current``).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Snapshot:
    """Full state of one document at a point in the store's commit order.

    ``document`` is None when the document does not exist.
    """

    path: str
    document: dict | None
    sequence: int = 0

    @property
    def exists(self) -> bool:
        return self.document is not None

    @classmethod
    def present(cls, path: str, document: dict, sequence: int = 0) -> "Snapshot":
        return cls(path=path, document=document, sequence=sequence)

    @classmethod
    def absent(cls, path: str, sequence: int = 0) -> "Snapshot":
        return cls(path=path, document=None, sequence=sequence)


@dataclass(frozen=True)
class WriteResult:
    """Result of a document write."""

    success: bool
    sequence: int | None = None
    failure_kind: str | None = None


class SubscriptionError(Exception):
    """The store could not keep delivering snapshots for a subscription."""


class Subscription(ABC):
    """Cancellable stream of snapshots for one path, in commit order."""

    def __aiter__(self):
        return self

    @abstractmethod
    async def __anext__(self) -> Snapshot:
        """Wait for the next snapshot.

        Raises:
            SubscriptionError: the stream failed.
            StopAsyncIteration: the subscription was closed.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Stop delivery. Idempotent."""
        ...


class DocumentStore(ABC):
    """Abstract realtime document store interface."""

    @abstractmethod
    def subscribe(self, path: str) -> Subscription:
        """Stream snapshots of ``path``, starting with its current state."""
        ...

    @abstractmethod
    def subscribe_collection(self, collection_path: str) -> Subscription:
        """Stream snapshots of every document directly under ``collection_path``.

        Each snapshot's ``document`` maps full child path to child document,
        and is always present (empty when the collection has no documents).
        The first snapshot is the current state.
        """
        ...

    @abstractmethod
    async def write(self, path: str, document: dict) -> WriteResult:
        """Replace the document at ``path``."""
        ...

    @abstractmethod
    async def list_documents(self, collection_path: str) -> dict[str, dict]:
        """Return every document directly under ``collection_path``, keyed by full path."""
        ...
