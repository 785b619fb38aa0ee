"""Tests for the Order aggregate and its document codec."""

from datetime import UTC, datetime

import pytest
from storefront.cart.cart import Cart, LineItem
from storefront.catalog.menu import Addition, CatalogItem
from storefront.errors import DeserializationFailure
from storefront.history.order import (
    Order,
    OrderPlaced,
    OrderStatus,
    order_from_document,
    order_to_document,
)

PLACED_AT = datetime(2026, 3, 14, 12, 30, tzinfo=UTC)


def _cart():
    cart = Cart.create(user_id="user-001")
    item = CatalogItem(item_id="1", name="Zesty Lemonade", base_price=5.99, category="Drinks", icon="🍋")
    cart.add_item(
        LineItem.build(item, quantity=2, size="Large", additions=[Addition(name="Chia Seeds", price=0.75)])
    )
    return cart


def _place(cart=None, order_number=10001):
    cart = cart or _cart()
    return Order.place(
        user_id="user-001",
        order_number=order_number,
        lines=list(cart.items),
        pricing=cart.totals(),
        placed_at=PLACED_AT,
    )


class TestPlace:
    def test_starts_preparing(self):
        assert _place().status == OrderStatus.PREPARING.value

    def test_copies_lines(self):
        cart = _cart()
        order = _place(cart)
        line = order.items[0]
        assert line.line_id == str(cart.items[0].id)
        assert line.quantity == 2
        assert line.unit_price == pytest.approx(8.24)
        assert line.addition_names == frozenset({"Chia Seeds"})

    def test_copies_pricing(self):
        order = _place()
        assert order.pricing.subtotal == pytest.approx(16.48)
        assert order.pricing.grand_total == pytest.approx(16.48 + 1.32 + 5.00)

    def test_lines_are_independent_of_the_cart(self):
        cart = _cart()
        order = _place(cart)
        cart.set_quantity(cart.items[0].id, 9)
        cart.clear()
        assert order.items[0].quantity == 2

    def test_raises_order_placed(self):
        order = _place()
        events = [e for e in order._events if isinstance(e, OrderPlaced)]
        assert len(events) == 1
        assert events[0].order_number == 10001
        assert events[0].item_count == 1


class TestOrderDocument:
    def test_document_shape(self):
        document = order_to_document(_place())
        assert document["orderId"] == 10001
        assert document["status"] == "Preparing"
        assert document["placedAt"].startswith("2026-03-14T12:30:00")
        assert document["deliveryFee"] == pytest.approx(5.00)
        assert document["items"][0]["additions"] == ["Chia Seeds"]

    def test_round_trip(self):
        order = _place()
        restored = order_from_document("user-001", order_to_document(order))
        assert order_to_document(restored) == order_to_document(order)
        assert restored.order_number == 10001

    def test_missing_status_defaults_to_preparing(self):
        document = order_to_document(_place())
        del document["status"]
        assert order_from_document("user-001", document).status == "Preparing"

    @pytest.mark.parametrize("missing", ["orderId", "items", "grandTotal", "placedAt"])
    def test_missing_fields_are_rejected(self, missing):
        document = order_to_document(_place())
        del document[missing]
        with pytest.raises(DeserializationFailure):
            order_from_document("user-001", document, "users/user-001/history/10001")

    def test_unknown_status_is_rejected(self):
        document = order_to_document(_place())
        document["status"] = "Lost"
        with pytest.raises(DeserializationFailure):
            order_from_document("user-001", document)


class TestOrderLineDocument:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"additions": "Chia Seeds"},
            {"additions": [1, 2]},
            {"quantity": "3"},
            {"quantity": 2.9},
            {"quantity": True},
            {"quantity": 0},
        ],
    )
    def test_malformed_lines_are_rejected(self, overrides):
        document = order_to_document(_place())
        document["items"][0].update(overrides)
        with pytest.raises(DeserializationFailure):
            order_from_document("user-001", document, "users/user-001/history/10001")

    def test_additions_are_read_as_names(self):
        document = order_to_document(_place())
        document["items"][0]["additions"] = ["Spinach Boost", "Chia Seeds", "Chia Seeds"]

        order = order_from_document("user-001", document)

        assert order.items[0].addition_names == {"Chia Seeds", "Spinach Boost"}

    def test_placed_at_without_offset_is_utc(self):
        document = order_to_document(_place())
        document["placedAt"] = "2024-01-01T10:00:00"

        order = order_from_document("user-001", document)

        assert order.placed_at.replace(tzinfo=order.placed_at.tzinfo or UTC) == datetime(2024, 1, 1, 10, tzinfo=UTC)
