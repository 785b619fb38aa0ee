"""Cart commands — the inputs the UI layer sends to the storefront session.

Field declarations carry the input validation: constructing a command with
a non-positive quantity, an unknown size, or a missing line id raises
Protean's ``ValidationError`` before any state is touched.
"""

from protean.fields import Identifier, Integer, String, Text

from storefront.catalog.menu import Size, Sweetness
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class AddToCart:
    user_id = String(required=True, max_length=255)
    catalog_item_id = String(required=True, max_length=50)
    size = String(choices=Size)
    sweetness = String(choices=Sweetness)
    additions = Text(default="[]")  # JSON: list of add-on names
    quantity = Integer(default=1, min_value=1)


@storefront.command(part_of="Cart")
class UpdateCartQuantity:
    user_id = String(required=True, max_length=255)
    line_id = Identifier(required=True)
    delta = Integer(required=True)


@storefront.command(part_of="Cart")
class RemoveFromCart:
    user_id = String(required=True, max_length=255)
    line_id = Identifier(required=True)

