"""Built-in activities. Importing this package registers them in the default registry."""

from listing_spine.activities import listing, payment, publishing

__all__ = ["listing", "payment", "publishing"]
