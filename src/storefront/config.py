"""Checkout and client-state settings.

Values default to what the storefront ships with and can be overridden
through ``STOREFRONT_*`` environment variables (see ``CheckoutSettings.from_env``).
"""

import os
from dataclasses import dataclass, field

CART_STORAGE_KEY = "ecommerce_cart"
WISHLIST_STORAGE_KEY = "wishlist"
RECENTLY_VIEWED_STORAGE_KEY = "recentlyViewed"


def _parse_promo_codes(raw: str) -> dict[str, float]:
    """Parse ``CODE:pct,CODE:pct`` into a code -> percentage map."""
    codes = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        code, _, pct = chunk.partition(":")
        codes[code.strip().upper()] = float(pct)
    return codes


@dataclass(frozen=True)
class CheckoutSettings:
    tax_rate: float = 0.08
    currency: str = "GHS"
    default_shipping_method: str = "standard"
    free_shipping_threshold: float | None = None
    promo_codes: dict[str, float] = field(default_factory=dict)
    max_address_fetch_attempts: int = 3
    address_loading_timeout: float = 10.0
    recently_viewed_limit: int = 10
    cart_storage_key: str = CART_STORAGE_KEY
    wishlist_storage_key: str = WISHLIST_STORAGE_KEY
    recently_viewed_storage_key: str = RECENTLY_VIEWED_STORAGE_KEY

    @classmethod
    def from_env(cls, environ=None) -> "CheckoutSettings":
        env = os.environ if environ is None else environ
        defaults = cls()

        threshold = env.get("STOREFRONT_FREE_SHIPPING_THRESHOLD")
        return cls(
            tax_rate=float(env.get("STOREFRONT_TAX_RATE", defaults.tax_rate)),
            currency=env.get("STOREFRONT_CURRENCY", defaults.currency),
            default_shipping_method=env.get("STOREFRONT_DEFAULT_SHIPPING", defaults.default_shipping_method),
            free_shipping_threshold=float(threshold) if threshold else None,
            promo_codes=_parse_promo_codes(env.get("STOREFRONT_PROMO_CODES", "")),
            max_address_fetch_attempts=int(
                env.get("STOREFRONT_ADDRESS_FETCH_ATTEMPTS", defaults.max_address_fetch_attempts)
            ),
            address_loading_timeout=float(
                env.get("STOREFRONT_ADDRESS_LOADING_TIMEOUT", defaults.address_loading_timeout)
            ),
        )
