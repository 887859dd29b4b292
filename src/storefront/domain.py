"""Storefront bounded context: cart, wishlist, address book and checkout.

Holds the client-side shopping state (cart, wishlist, recently viewed), the
shipping address selection logic and the checkout wizard that turns a cart
into a persisted order.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
