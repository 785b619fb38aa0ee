"""Order history ledger — append-only record of the user's finalized orders.

Orders are keyed by order number. Numbers are allocated monotonically from
the highest number the ledger has seen, so orders loaded from storage and
orders placed in this session never collide.
"""

from datetime import UTC, datetime

import structlog

from storefront.cart.cart import Cart
from storefront.errors import EmptyCheckoutFailure
from storefront.history.order import Order
from storefront.shared.pricing import PricingPolicy

logger = structlog.get_logger(__name__)

ORDER_NUMBER_BASE = 10000


class OrderHistoryLedger:
    def __init__(self, user_id: str, orders: list[Order] = ()) -> None:
        self.user_id = user_id
        self._orders: dict[int, Order] = {}
        for order in orders:
            self.record(order)

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_number) -> bool:
        return order_number in self._orders

    def get(self, order_number: int) -> Order | None:
        return self._orders.get(order_number)

    def next_order_number(self) -> int:
        return max(self._orders, default=ORDER_NUMBER_BASE) + 1

    def record(self, order: Order) -> None:
        """Add an order known from storage. Re-recording the same number replaces it."""
        self._orders[order.order_number] = order

    def place_order(
        self,
        cart: Cart,
        policy: PricingPolicy | None = None,
        placed_at: datetime | None = None,
    ) -> Order:
        """Snapshot ``cart`` into a new Preparing order, then clear the cart.

        Raises:
            EmptyCheckoutFailure: the cart has no lines, or its grand total is not positive.
        """
        if cart.is_empty:
            raise EmptyCheckoutFailure("Cannot check out an empty cart")

        pricing = cart.totals(policy)
        if pricing.grand_total <= 0:
            raise EmptyCheckoutFailure(f"Cannot check out a cart totalling {pricing.grand_total:.2f}")

        order = Order.place(
            user_id=self.user_id,
            order_number=self.next_order_number(),
            lines=list(cart.items),
            pricing=pricing,
            placed_at=placed_at,
        )
        self._orders[order.order_number] = order
        cart.clear()

        logger.info(
            "Order placed",
            user_id=self.user_id,
            order_number=order.order_number,
            item_count=len(order.items),
            grand_total=pricing.grand_total,
        )
        return order

    def list_orders(self) -> list[Order]:
        """All orders, newest first. Orders placed at the same instant are ordered by number."""
        return sorted(self._orders.values(), key=_newest_first_key, reverse=True)


def _newest_first_key(order: Order):
    placed_at = order.placed_at
    if placed_at.tzinfo is None:
        placed_at = placed_at.replace(tzinfo=UTC)
    return placed_at, order.order_number
