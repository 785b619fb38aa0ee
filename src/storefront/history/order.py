"""Order aggregate — a finalized checkout, frozen at the moment it was placed.

An order copies the cart's lines and price summary at checkout. The cart
flow never changes an order afterwards; status transitions belong to the
kitchen side and are not driven from here.

Order document shape::

    {"orderId": 10001, "items": [<line item>, ...], "subtotal": 14.98,
     "tax": 1.2, "deliveryFee": 5.0, "grandTotal": 21.18,
     "placedAt": "<ISO-8601>", "status": "Preparing"}
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.cart.serialization import parse_timestamp, read_additions, read_quantity
from storefront.domain import storefront
from storefront.errors import DeserializationFailure
from storefront.shared.pricing import Pricing


class OrderStatus(Enum):
    PREPARING = "Preparing"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


@storefront.event(part_of="Order")
class OrderPlaced:
    """A cart was checked out into a new order."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = Integer(required=True)
    user_id = String(required=True)
    item_count = Integer(required=True)
    grand_total = Float(required=True)
    placed_at = DateTime(required=True)


@storefront.entity(part_of="Order")
class OrderLine:
    """Copy of a cart line taken at checkout."""

    line_id = String(required=True, max_length=50)
    catalog_item_id = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    base_price = Float(required=True)
    unit_price = Float(required=True)
    quantity = Integer(required=True, min_value=1)
    size = String(max_length=20)
    sweetness = String(max_length=20)
    additions = Text(default="[]")  # JSON: sorted list of add-on names
    icon = String(max_length=16)

    @classmethod
    def from_line_item(cls, item):
        return cls(
            line_id=str(item.id),
            catalog_item_id=str(item.catalog_item_id),
            name=item.name,
            base_price=item.base_price,
            unit_price=item.unit_price,
            quantity=item.quantity,
            size=item.size,
            sweetness=item.sweetness,
            additions=item.additions,
            icon=item.icon,
        )

    @property
    def addition_names(self) -> frozenset[str]:
        return frozenset(json.loads(self.additions) if self.additions else [])


@storefront.aggregate
class Order:
    user_id = String(required=True, max_length=255)
    order_number = Integer(required=True, min_value=1)
    items = HasMany(OrderLine)
    pricing = ValueObject(Pricing)
    placed_at = DateTime(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PREPARING.value)

    @classmethod
    def place(cls, user_id, order_number, lines, pricing, placed_at=None):
        """Create a Preparing order from cart lines and their price summary."""
        order = cls(
            user_id=user_id,
            order_number=order_number,
            pricing=pricing,
            placed_at=placed_at or datetime.now(UTC),
            status=OrderStatus.PREPARING.value,
        )
        for line in lines:
            order.add_items(OrderLine.from_line_item(line))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=user_id,
                item_count=len(order.items),
                grand_total=pricing.grand_total,
                placed_at=order.placed_at,
            )
        )
        return order


# ---------------------------------------------------------------------------
# Document codec
# ---------------------------------------------------------------------------
def order_line_to_dict(line: OrderLine) -> dict:
    return {
        "lineId": line.line_id,
        "catalogItemId": line.catalog_item_id,
        "name": line.name,
        "basePrice": line.base_price,
        "unitPrice": line.unit_price,
        "quantity": line.quantity,
        "size": line.size,
        "sweetness": line.sweetness,
        "additions": sorted(line.addition_names),
        "icon": line.icon,
    }


def order_line_from_dict(data: dict) -> OrderLine:
    return OrderLine(
        line_id=str(data["lineId"]),
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


def order_to_document(order: Order) -> dict:
    return {
        "orderId": order.order_number,
        "items": [order_line_to_dict(line) for line in order.items],
        "subtotal": order.pricing.subtotal,
        "tax": order.pricing.tax,
        "deliveryFee": order.pricing.delivery_fee,
        "grandTotal": order.pricing.grand_total,
        "placedAt": order.placed_at.isoformat(),
        "status": order.status,
    }


def order_from_document(user_id: str, document: dict, path: str = "") -> Order:
    """Rebuild an order from a stored document.

    Raises:
        DeserializationFailure: the document is not a well-formed order.
    """
    try:
        lines = [order_line_from_dict(data) for data in document["items"]]
        order = Order(
            user_id=user_id,
            order_number=int(document["orderId"]),
            pricing=Pricing(
                subtotal=float(document["subtotal"]),
                tax=float(document["tax"]),
                delivery_fee=float(document["deliveryFee"]),
                grand_total=float(document["grandTotal"]),
            ),
            placed_at=parse_timestamp(document["placedAt"]),
            status=document.get("status", OrderStatus.PREPARING.value),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        raise DeserializationFailure(path, f"malformed order document: {exc!r}") from exc

    for line in lines:
        order.add_items(line)
    return order
