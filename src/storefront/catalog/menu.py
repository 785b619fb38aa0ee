"""Menu catalog — purchasable items and the add-ons that customize them.

The catalog is static and read-only. It is loaded once at session start
from plain data (``MENU_ITEMS`` / ``ADDITIONS``) and handed to the session,
which resolves command input against it.
"""

from enum import Enum

from protean.fields import Float, String

from storefront.domain import storefront


class Size(Enum):
    SMALL = "Small"
    MEDIUM = "Medium"
    LARGE = "Large"


class Sweetness(Enum):
    LOW = "Low"
    REGULAR = "Regular"
    EXTRA = "Extra"


ALL_CATEGORIES = "all"

MENU_ITEMS = [
    {"item_id": "1", "name": "Zesty Lemonade", "base_price": 5.99, "icon": "🍋", "category": "Drinks"},
    {"item_id": "2", "name": "Classic Green Smoothie", "base_price": 7.49, "icon": "🥬", "category": "Drinks"},
    {"item_id": "3", "name": "Açai Energy Bowl", "base_price": 10.99, "icon": "🫐", "category": "Bowls"},
    {"item_id": "4", "name": "Protein Power Wrap", "base_price": 9.99, "icon": "🌯", "category": "Wraps"},
    {"item_id": "5", "name": "Watermelon Refresher", "base_price": 6.50, "icon": "🍉", "category": "Drinks"},
    {"item_id": "6", "name": "Mediterranean Salad Wrap", "base_price": 11.50, "icon": "🥗", "category": "Wraps"},
]

ADDITIONS = [
    {"name": "Protein Powder", "price": 1.50},
    {"name": "Chia Seeds", "price": 0.75},
    {"name": "Ginger Shot", "price": 1.00},
    {"name": "Spinach Boost", "price": 0.50},
]


@storefront.value_object
class CatalogItem:
    """A purchasable menu entry."""

    item_id = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    base_price = Float(required=True, min_value=0.0)
    category = String(required=True, max_length=100)
    icon = String(max_length=16)


@storefront.value_object
class Addition:
    """An add-on that raises a line's unit price by a fixed amount."""

    name = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)


class Catalog:
    """Read-only lookup over menu items and add-ons."""

    def __init__(self, items, additions):
        self._items = {item.item_id: item for item in items}
        self._additions = {addition.name: addition for addition in additions}

    @classmethod
    def default(cls):
        return cls(
            [CatalogItem(**data) for data in MENU_ITEMS],
            [Addition(**data) for data in ADDITIONS],
        )

    @property
    def items(self) -> list[CatalogItem]:
        return list(self._items.values())

    @property
    def additions(self) -> list[Addition]:
        return list(self._additions.values())

    def get(self, item_id: str) -> CatalogItem | None:
        return self._items.get(str(item_id))

    def addition(self, name: str) -> Addition | None:
        return self._additions.get(name)

    def categories(self) -> list[str]:
        """Distinct categories in menu order."""
        seen = []
        for item in self._items.values():
            if item.category not in seen:
                seen.append(item.category)
        return seen

    def by_category(self, category: str) -> list[CatalogItem]:
        if category == ALL_CATEGORIES:
            return self.items
        return [item for item in self._items.values() if item.category == category]
