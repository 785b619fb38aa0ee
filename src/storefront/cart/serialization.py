"""Cart document codec.

Cart document shape::

    {"items": [<line item>, ...], "updatedAt": "<ISO-8601>"}

Line items are stored as camelCase objects. ``additions`` is written as a
sorted list so equal carts always produce equal documents.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError

from storefront.cart.cart import Cart, LineItem
from storefront.errors import DeserializationFailure


def line_item_to_dict(item) -> dict:
    return {
        "lineId": str(item.id),
        "catalogItemId": str(item.catalog_item_id),
        "name": item.name,
        "basePrice": item.base_price,
        "unitPrice": item.unit_price,
        "quantity": item.quantity,
        "size": item.size,
        "sweetness": item.sweetness,
        "additions": sorted(item.addition_names),
        "icon": item.icon,
    }


def read_quantity(data: dict) -> int:
    """A stored line quantity: a real integer of at least 1."""
    quantity = data["quantity"]
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise TypeError(f"quantity must be an integer, got {quantity!r}")
    if quantity < 1:
        raise ValueError(f"quantity must be at least 1, got {quantity}")
    return quantity


def read_additions(data: dict) -> str:
    """Stored add-on names as the sorted JSON list kept on line entities."""
    additions = data.get("additions") or []
    if not isinstance(additions, list) or not all(isinstance(a, str) for a in additions):
        raise TypeError("additions must be a list of names")
    return json.dumps(sorted(set(additions)))


def line_item_from_dict(data: dict) -> LineItem:
    return LineItem(
        id=str(data["lineId"]),
        catalog_item_id=str(data["catalogItemId"]),
        name=data["name"],
        base_price=float(data["basePrice"]),
        unit_price=float(data["unitPrice"]),
        quantity=read_quantity(data),
        size=data.get("size"),
        sweetness=data.get("sweetness"),
        additions=read_additions(data),
        icon=data.get("icon"),
    )


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 timestamp. One without an offset is taken as UTC."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def cart_to_document(cart: Cart) -> dict:
    return {
        "items": [line_item_to_dict(item) for item in cart.items],
        "updatedAt": cart.updated_at.isoformat() if cart.updated_at else None,
    }


def cart_from_document(user_id: str, document: dict, path: str = "") -> Cart:
    """Rebuild a cart from a stored document.

    Equivalent lines in the document are folded into the first of them, so
    the rebuilt cart never holds two lines a fresh add would have merged.

    Raises:
        DeserializationFailure: the document is not a well-formed cart.
    """
    try:
        raw_items = document["items"]
        if not isinstance(raw_items, list):
            raise TypeError("items must be a list")
        items = [line_item_from_dict(data) for data in raw_items]
        cart = Cart(user_id=user_id, updated_at=parse_timestamp(document.get("updatedAt")))
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        raise DeserializationFailure(path, f"malformed cart document: {exc!r}") from exc

    for item in items:
        existing = next((line for line in cart.items if line.is_equivalent_to(item)), None)
        if existing:
            existing.quantity += item.quantity
        else:
            cart.add_items(item)
    return cart
