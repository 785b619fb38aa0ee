"""Storefront bounded context — cloud-kitchen menu, cart, and order history.

Handles menu browsing, customized cart lines, checkout into an order
history ledger, and keeping the cart in step with a realtime document store.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
