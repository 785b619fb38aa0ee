"""Document store adapters.

- InMemoryDocumentStore for development and testing
- DocumentStore is the port a hosted realtime database adapter implements
"""

from storefront.gateway.fake_adapter import InMemoryDocumentStore
from storefront.gateway.port import DocumentStore, Snapshot, Subscription, SubscriptionError, WriteResult

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "Snapshot",
    "Subscription",
    "SubscriptionError",
    "WriteResult",
]
