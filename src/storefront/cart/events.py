"""Domain events for the Cart aggregate."""

from protean.fields import Boolean, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartItemAdded:
    """A customized item was added to the cart, or merged into an equivalent line."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    catalog_item_id = String(required=True)
    quantity = Integer(required=True)
    merged = Boolean(default=False)


@storefront.event(part_of="Cart")
class CartQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartItemRemoved:
    """A line was removed from the cart."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    """Every line was removed from the cart."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    removed_count = Integer(required=True)
