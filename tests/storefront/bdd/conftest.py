"""Shared BDD fixtures and step definitions for the storefront cart and order history."""

import pytest
from pytest_bdd import given, parsers, then
from storefront.cart.cart import Cart, LineItem
from storefront.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from storefront.history.ledger import OrderHistoryLedger
from storefront.history.order import OrderPlaced

_EVENT_CLASSES = {
    "CartItemAdded": CartItemAdded,
    "CartQuantityUpdated": CartQuantityUpdated,
    "CartItemRemoved": CartItemRemoved,
    "CartCleared": CartCleared,
    "OrderPlaced": OrderPlaced,
}


@pytest.fixture()
def error():
    """Container for captured failures."""
    return {"exc": None}


@pytest.fixture()
def build_line(catalog):
    """Build a line for a menu item looked up by name."""

    def _build(name, quantity=1, size=None, additions=()):
        item = next(item for item in catalog.items if item.name == name)
        return LineItem.build(
            item,
            quantity=quantity,
            size=size,
            additions=[catalog.addition(a) for a in additions],
        )

    return _build


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="cart")
def empty_cart():
    cart = Cart.create(user_id="user-001")
    cart._events.clear()
    return cart


@given("an empty order history", target_fixture="ledger")
def empty_ledger():
    return OrderHistoryLedger("user-001")


@given(parsers.cfparse('the cart holds {quantity:d} "{name}"'), target_fixture="cart")
def cart_holding(cart, build_line, quantity, name):
    cart.add_item(build_line(name, quantity=quantity))
    cart._events.clear()
    return cart


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart has {count:d} line"))
def cart_has_one_line(cart, count):
    assert len(cart.items) == count


@then(parsers.cfparse("the cart has {count:d} lines"))
def cart_has_n_lines(cart, count):
    assert len(cart.items) == count


@then("the cart is empty")
def cart_is_empty(cart):
    assert cart.is_empty


@then(parsers.cfparse("a {event_type} event is raised on the cart"))
def cart_event_raised(cart, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in cart._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in cart._events]}"
