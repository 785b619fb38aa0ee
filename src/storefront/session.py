"""Storefront session — the command surface the UI layer talks to.

A session belongs to one user. It holds the in-memory cart and order
history, applies commands to them, and persists the result. One background
task consumes the cart subscription in commit order and replaces the local
cart with every authoritative snapshot it receives; a second one records
every order that appears in the stored history, including orders placed
from other sessions.

Commands never raise storefront failures; they return a ``CommandResult``
carrying either the value or the typed failure for the UI to render.
Local changes are optimistic: a command whose write fails still leaves the
cart changed in memory until the next snapshot says otherwise.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import structlog
from protean.exceptions import ValidationError

from storefront.cart.cart import Cart, LineItem
from storefront.cart.commands import AddToCart, RemoveFromCart, UpdateCartQuantity
from storefront.catalog.menu import Catalog
from storefront.config import StorefrontSettings
from storefront.errors import EmptyCheckoutFailure, PersistenceFailure, StorefrontFailure, ValidationFailure
from storefront.gateway.port import DocumentStore
from storefront.history.ledger import OrderHistoryLedger
from storefront.persistence import CartWatch, HistoryWatch, PersistenceGateway, check_user_id
from storefront.shared.pricing import Pricing

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a session command."""

    success: bool
    value: Any = None
    failure: StorefrontFailure | None = None

    @classmethod
    def ok(cls, value=None) -> "CommandResult":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, failure: StorefrontFailure) -> "CommandResult":
        return cls(success=False, failure=failure)


class StorefrontSession:
    """One user's storefront. ``user_id`` is checked on construction (``ValidationFailure``)."""

    def __init__(
        self,
        user_id: str,
        store: DocumentStore,
        settings: StorefrontSettings | None = None,
        catalog: Catalog | None = None,
        sleep=asyncio.sleep,
    ) -> None:
        self.user_id = check_user_id(user_id)
        self.settings = settings or StorefrontSettings()
        self.gateway = PersistenceGateway(store, self.settings, sleep=sleep)
        self.catalog = catalog or Catalog.default()
        self.policy = self.settings.pricing_policy()

        self.cart = Cart.create(user_id)
        self.ledger = OrderHistoryLedger(user_id)
        self.last_failure: StorefrontFailure | None = None
        self.snapshots_applied = 0

        self._watch: CartWatch | None = None
        self._history_watch: HistoryWatch | None = None
        self._sync_task: asyncio.Task | None = None
        self._history_task: asyncio.Task | None = None
        self._synced: asyncio.Event | None = None
        self._history_synced: asyncio.Event | None = None
        self._history_seen = False

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self) -> None:
        """Subscribe to the cart and the order history and wait for the first snapshot of each.

        Raises:
            PersistenceFailure: no snapshot arrived before ``start_timeout``,
                or a subscription failed first.
        """
        self._watch = self.gateway.watch_cart(self.user_id)
        self._history_watch = self.gateway.watch_history(self.user_id)
        self._synced = asyncio.Event()
        self._history_synced = asyncio.Event()
        self._sync_task = asyncio.create_task(self._sync_loop())
        self._history_task = asyncio.create_task(self._history_loop())

        try:
            await asyncio.wait_for(
                asyncio.gather(self._synced.wait(), self._history_synced.wait()),
                timeout=self.settings.start_timeout,
            )
        except TimeoutError:
            await self.close()
            raise PersistenceFailure(self._watch.path, "no snapshot before start timeout") from None

        if self.snapshots_applied == 0:
            await self.close()
            raise self.last_failure or PersistenceFailure(self._watch.path, "cart subscription ended before first snapshot")
        if not self._history_seen:
            await self.close()
            raise self.last_failure or PersistenceFailure(
                self._history_watch.path, "history subscription ended before first snapshot"
            )

    async def close(self) -> None:
        """Unsubscribe and wait for the sync loops to finish."""
        for watch in (self._watch, self._history_watch):
            if watch is not None:
                watch.close()
        if self._sync_task is not None:
            await self._sync_task
            self._sync_task = None
        if self._history_task is not None:
            await self._history_task
            self._history_task = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _sync_loop(self) -> None:
        try:
            async for cart in self._watch:
                self.cart = cart
                self.snapshots_applied += 1
                if self._watch.last_failure is not None:
                    self.last_failure = self._watch.last_failure
                    self._watch.last_failure = None
                self._synced.set()
        except PersistenceFailure as exc:
            self.last_failure = exc
            logger.error("Cart subscription failed", user_id=self.user_id, reason=exc.reason)
        finally:
            self._synced.set()

    async def _history_loop(self) -> None:
        try:
            async for orders in self._history_watch:
                for order in orders:
                    self.ledger.record(order)
                self._history_seen = True
                self._history_synced.set()
        except PersistenceFailure as exc:
            self.last_failure = exc
            logger.error("Order history subscription failed", user_id=self.user_id, reason=exc.reason)
        finally:
            self._history_synced.set()

    # -------------------------------------------------------------------
    # Read models
    # -------------------------------------------------------------------
    def totals(self) -> Pricing:
        return self.cart.totals(self.policy)

    def orders(self):
        return self.ledger.list_orders()

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    async def add_to_cart(
        self,
        catalog_item_id: str,
        size: str | None = None,
        sweetness: str | None = None,
        additions: list[str] = (),
        quantity: int = 1,
    ) -> CommandResult:
        """Add a customized item; returns the id of the line it landed on."""
        try:
            command = self._command(
                AddToCart,
                user_id=self.user_id,
                catalog_item_id=catalog_item_id,
                size=size,
                sweetness=sweetness,
                additions=json.dumps(list(additions)),
                quantity=quantity,
            )
            item = self._build_line_item(command)
        except ValidationFailure as exc:
            return self._rejected("add_to_cart", exc)

        line_id = self.cart.add_item(item)
        return await self._persist_cart("add_to_cart", line_id)

    async def update_quantity(self, line_id: str, delta: int) -> CommandResult:
        """Change a line's quantity by ``delta``; a result of zero or less removes it."""
        try:
            command = self._command(UpdateCartQuantity, user_id=self.user_id, line_id=line_id, delta=delta)
        except ValidationFailure as exc:
            return self._rejected("update_quantity", exc)

        item = self.cart.line(command.line_id)
        if item is None:
            return CommandResult.ok()

        self.cart.set_quantity(command.line_id, item.quantity + command.delta)
        return await self._persist_cart("update_quantity")

    async def remove_item(self, line_id: str) -> CommandResult:
        try:
            command = self._command(RemoveFromCart, user_id=self.user_id, line_id=line_id)
        except ValidationFailure as exc:
            return self._rejected("remove_item", exc)

        if self.cart.line(command.line_id) is None:
            return CommandResult.ok()

        self.cart.remove_item(command.line_id)
        return await self._persist_cart("remove_item")

    async def clear_cart(self) -> CommandResult:
        self.cart.clear()
        return await self._persist_cart("clear_cart")

    async def checkout(self) -> CommandResult:
        """Place an order from the cart, store it, and store the emptied cart.

        Stored history is read first so the new order number follows every
        order already stored for the user, whichever session placed it.
        """
        for stored in await self.gateway.load_orders(self.user_id):
            self.ledger.record(stored)

        try:
            order = self.ledger.place_order(self.cart, self.policy)
        except EmptyCheckoutFailure as exc:
            return self._rejected("checkout", exc)

        try:
            await self.gateway.save_order(order)
            await self.gateway.save_cart(self.cart)
        except PersistenceFailure as exc:
            return self._persistence_failed("checkout", exc)
        return CommandResult.ok(order)

    async def load_history(self) -> CommandResult:
        """Merge stored orders into the ledger and return the history, newest first."""
        for order in await self.gateway.load_orders(self.user_id):
            self.ledger.record(order)
        return CommandResult.ok(self.ledger.list_orders())

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _command(command_cls, **kwargs):
        try:
            return command_cls(**kwargs)
        except ValidationError as exc:
            raise ValidationFailure(exc.messages) from exc

    def _build_line_item(self, command: AddToCart) -> LineItem:
        catalog_item = self.catalog.get(command.catalog_item_id)
        if catalog_item is None:
            raise ValidationFailure({"catalog_item_id": [f"Unknown menu item: {command.catalog_item_id}"]})

        additions = []
        unknown = []
        for name in json.loads(command.additions or "[]"):
            addition = self.catalog.addition(name)
            if addition is None:
                unknown.append(name)
            else:
                additions.append(addition)
        if unknown:
            raise ValidationFailure({"additions": [f"Unknown add-on: {name}" for name in unknown]})

        return LineItem.build(
            catalog_item,
            quantity=command.quantity,
            size=command.size,
            sweetness=command.sweetness,
            additions=additions,
        )

    async def _persist_cart(self, command_name: str, value=None) -> CommandResult:
        try:
            await self.gateway.save_cart(self.cart)
        except PersistenceFailure as exc:
            return self._persistence_failed(command_name, exc)
        return CommandResult.ok(value)

    def _rejected(self, command_name: str, failure: StorefrontFailure) -> CommandResult:
        logger.info("Command rejected", command=command_name, user_id=self.user_id, failure=str(failure))
        return CommandResult.failed(failure)

    def _persistence_failed(self, command_name: str, failure: PersistenceFailure) -> CommandResult:
        self.last_failure = failure
        logger.warning(
            "Command applied locally but not persisted",
            command=command_name,
            user_id=self.user_id,
            path=failure.path,
        )
        return CommandResult.failed(failure)
