"""Line-item pricer.

unit price = base price + sum of add-on prices + size delta

No floor is applied: a catalog entry cheaper than the Small discount
prices below zero. Catalog data is expected not to contain such entries.
"""

from storefront.catalog.menu import Addition, CatalogItem, Size

SIZE_DELTAS = {
    Size.SMALL.value: -0.50,
    Size.MEDIUM.value: 0.0,
    Size.LARGE.value: 1.50,
}


def size_delta(size: str | None) -> float:
    if size is None:
        return 0.0
    return SIZE_DELTAS[size]


def price(catalog_item: CatalogItem, size: str | None = None, additions: list[Addition] = ()) -> float:
    """Effective unit price of one customized catalog item, rounded to cents."""
    unit_price = catalog_item.base_price + sum(addition.price for addition in additions) + size_delta(size)
    return round(unit_price, 2)
