"""Persistence gateway — storefront documents on top of a DocumentStore.

Owns the key layout, the write retry policy, and the translation between
store snapshots and domain objects. The cart document and the history
collection are both watched in real time::

    users/{userId}/cart/current        the cart document
    users/{userId}/history/{orderId}   one document per order

Every key is prefixed with the settings namespace when ``app_id`` is set.

Writes that the store rejects are retried with exponential backoff. When the
attempts run out a ``PersistenceFailure`` is raised; whatever the caller
already changed in memory stays changed.
"""

import asyncio

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.cart.cart import Cart
from storefront.cart.serialization import cart_from_document, cart_to_document
from storefront.config import StorefrontSettings
from storefront.errors import DeserializationFailure, PersistenceFailure, ValidationFailure
from storefront.gateway.port import DocumentStore, Snapshot, SubscriptionError, WriteResult
from storefront.history.order import Order, order_from_document, order_to_document

logger = structlog.get_logger(__name__)


class _WriteRejected(Exception):
    def __init__(self, kind: str | None) -> None:
        self.kind = kind or "unknown"
        super().__init__(self.kind)


def check_user_id(user_id: str) -> str:
    """Reject user ids that are empty or would escape their key subtree."""
    if not isinstance(user_id, str) or not user_id or "/" in user_id:
        raise ValidationFailure({"user_id": [f"Invalid user id: {user_id!r}"]})
    return user_id


class PersistenceGateway:
    def __init__(self, store: DocumentStore, settings: StorefrontSettings | None = None, sleep=asyncio.sleep) -> None:
        self.store = store
        self.settings = settings or StorefrontSettings()
        self._sleep = sleep

    # -------------------------------------------------------------------
    # Key layout
    # -------------------------------------------------------------------
    def _user_root(self, user_id: str) -> str:
        return f"{self.settings.namespace}users/{check_user_id(user_id)}"

    def cart_path(self, user_id: str) -> str:
        return f"{self._user_root(user_id)}/cart/current"

    def history_path(self, user_id: str) -> str:
        return f"{self._user_root(user_id)}/history"

    def order_path(self, user_id: str, order_number: int) -> str:
        return f"{self.history_path(user_id)}/{order_number}"

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    async def write(self, path: str, document: dict) -> WriteResult:
        """Write ``document`` to ``path``, retrying rejected writes.

        Raises:
            PersistenceFailure: every attempt was rejected.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.write_max_attempts),
            wait=wait_exponential(multiplier=self.settings.write_backoff_base),
            retry=retry_if_exception_type(_WriteRejected),
            sleep=self._sleep,
            before_sleep=_log_retry(path),
            reraise=True,
        )

        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await self.store.write(path, document)
                    if not result.success:
                        raise _WriteRejected(result.failure_kind)
        except _WriteRejected as exc:
            logger.error(
                "Document write failed after retries",
                path=path,
                attempts=attempts,
                failure_kind=exc.kind,
            )
            raise PersistenceFailure(path, exc.kind, attempts) from exc

        return result

    async def save_cart(self, cart: Cart) -> WriteResult:
        return await self.write(self.cart_path(cart.user_id), cart_to_document(cart))

    async def save_order(self, order: Order) -> WriteResult:
        return await self.write(self.order_path(order.user_id, order.order_number), order_to_document(order))

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def watch_cart(self, user_id: str) -> "CartWatch":
        return CartWatch(self, user_id)

    def watch_history(self, user_id: str) -> "HistoryWatch":
        return HistoryWatch(self, user_id)

    async def load_orders(self, user_id: str) -> list[Order]:
        """Every well-formed order stored for ``user_id``; malformed documents are skipped."""
        documents = await self.store.list_documents(self.history_path(user_id))
        return orders_from_documents(user_id, documents)


def orders_from_documents(user_id: str, documents: dict[str, dict]) -> list[Order]:
    orders = []
    for path, document in documents.items():
        try:
            orders.append(order_from_document(user_id, document, path))
        except DeserializationFailure as exc:
            logger.warning("Skipping malformed order document", path=path, reason=exc.reason)
    return orders


class _Watch:
    """Async iterator over one subscription, in commit order.

    Snapshots older than one already delivered are dropped. A subscription
    error closes the watch and surfaces as ``PersistenceFailure``.
    """

    def __init__(self, gateway: PersistenceGateway, user_id: str, path: str, subscription) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self.path = path
        self.last_sequence = -1
        self._subscription = subscription

    def __aiter__(self):
        return self

    async def __anext__(self):
        while True:
            try:
                snapshot = await self._subscription.__anext__()
            except SubscriptionError as exc:
                self.close()
                raise PersistenceFailure(self.path, f"subscription failed: {exc}") from exc

            if snapshot.sequence < self.last_sequence:
                logger.debug(
                    "Dropping stale snapshot",
                    path=self.path,
                    sequence=snapshot.sequence,
                    last_sequence=self.last_sequence,
                )
                continue
            self.last_sequence = snapshot.sequence

            return await self._apply(snapshot)

    async def _apply(self, snapshot: Snapshot):
        raise NotImplementedError

    def close(self) -> None:
        self._subscription.close()


class CartWatch(_Watch):
    """Stream of authoritative carts for one user.

    Each snapshot replaces the cart outright. A missing or malformed cart
    document yields a fresh empty cart, which is also written back to
    establish the document.
    """

    def __init__(self, gateway: PersistenceGateway, user_id: str) -> None:
        path = gateway.cart_path(user_id)
        super().__init__(gateway, user_id, path, gateway.store.subscribe(path))
        self.last_failure: PersistenceFailure | None = None

    async def _apply(self, snapshot: Snapshot) -> Cart:
        if snapshot.exists:
            try:
                return cart_from_document(self.user_id, snapshot.document, self.path)
            except DeserializationFailure as exc:
                logger.warning("Malformed cart snapshot, treating as absent", path=self.path, reason=exc.reason)

        return await self._bootstrap()

    async def _bootstrap(self) -> Cart:
        cart = Cart.create(self.user_id)
        logger.info("Initializing cart document", path=self.path)
        try:
            await self.gateway.save_cart(cart)
        except PersistenceFailure as exc:
            self.last_failure = exc
        return cart


class HistoryWatch(_Watch):
    """Stream of the user's stored orders, one full list per collection change."""

    def __init__(self, gateway: PersistenceGateway, user_id: str) -> None:
        path = gateway.history_path(user_id)
        super().__init__(gateway, user_id, path, gateway.store.subscribe_collection(path))

    async def _apply(self, snapshot: Snapshot) -> list[Order]:
        return orders_from_documents(self.user_id, snapshot.document or {})


def _log_retry(path: str):
    def before_sleep(retry_state) -> None:
        logger.warning(
            "Document write failed, retrying",
            path=path,
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep,
        )

    return before_sleep
