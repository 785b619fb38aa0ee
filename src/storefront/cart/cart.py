"""Cart aggregate — the user's current selection of customized menu items.

The cart lives purely in memory. It knows nothing about storage: callers
persist it explicitly after each mutation, and replace it wholesale when a
fresher snapshot arrives from the document store.

Invariants:
    - no two lines are equivalent (same catalog item, size, sweetness, and
      set of additions); adding an equivalent line merges quantities
    - every line has quantity >= 1; a line set to zero is removed
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from protean.fields import DateTime, Float, HasMany, Integer, String, Text

from storefront.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from storefront.catalog.menu import Addition, CatalogItem, Size, Sweetness
from storefront.catalog.pricing import price
from storefront.domain import storefront
from storefront.shared.pricing import Pricing, PricingPolicy


@storefront.entity(part_of="Cart")
class LineItem:
    """One distinct customized product entry. The entity id is the line id."""

    catalog_item_id = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    base_price = Float(required=True)
    unit_price = Float(required=True)
    quantity = Integer(required=True, min_value=1)
    size = String(choices=Size)
    sweetness = String(choices=Sweetness)
    additions = Text(default="[]")  # JSON: sorted list of add-on names
    icon = String(max_length=16)

    @classmethod
    def build(
        cls,
        catalog_item: CatalogItem,
        quantity: int = 1,
        size: str | None = None,
        sweetness: str | None = None,
        additions: list[Addition] = (),
    ):
        names = sorted({addition.name for addition in additions})
        return cls(
            id=str(uuid4()),
            catalog_item_id=catalog_item.item_id,
            name=catalog_item.name,
            base_price=catalog_item.base_price,
            unit_price=price(catalog_item, size, additions),
            quantity=quantity,
            size=size,
            sweetness=sweetness,
            additions=json.dumps(names),
            icon=catalog_item.icon,
        )

    @property
    def addition_names(self) -> frozenset[str]:
        return frozenset(json.loads(self.additions) if self.additions else [])

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    def is_equivalent_to(self, other) -> bool:
        return (
            str(self.catalog_item_id) == str(other.catalog_item_id)
            and self.size == other.size
            and self.sweetness == other.sweetness
            and self.addition_names == other.addition_names
        )


@storefront.aggregate
class Cart:
    user_id = String(required=True, max_length=255)
    items = HasMany(LineItem)
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        return cls(user_id=user_id, updated_at=datetime.now(UTC))

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line(self, line_id):
        return next((i for i in self.items if str(i.id) == str(line_id)), None)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def totals(self, policy: PricingPolicy | None = None) -> Pricing:
        """Derive subtotal, tax, delivery fee, and grand total from the current lines."""
        policy = policy or PricingPolicy()
        subtotal = sum(item.unit_price * item.quantity for item in self.items)
        return policy.summarize(subtotal)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_item(self, item):
        """Append ``item``, or merge its quantity into an equivalent line."""
        existing = next((i for i in self.items if i.is_equivalent_to(item)), None)

        if existing:
            existing.quantity += item.quantity
            line_id = str(existing.id)
        else:
            self.add_items(item)
            line_id = str(item.id)

        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                line_id=line_id,
                catalog_item_id=str(item.catalog_item_id),
                quantity=item.quantity,
                merged=existing is not None,
            )
        )
        return line_id

    def set_quantity(self, line_id, new_quantity):
        """Set a line's quantity; zero or less removes it. Unknown lines are ignored."""
        item = self.line(line_id)
        if item is None:
            return

        if new_quantity <= 0:
            self.remove_item(line_id)
            return

        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, line_id):
        item = self.line(line_id)
        if item is None:
            return

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                line_id=str(line_id),
            )
        )

    def clear(self):
        removed = list(self.items)
        for item in removed:
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                removed_count=len(removed),
            )
        )
