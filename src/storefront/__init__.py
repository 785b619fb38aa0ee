"""Cloud-kitchen storefront: menu, cart, checkout, and order history."""
