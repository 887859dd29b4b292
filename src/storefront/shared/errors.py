"""Failure taxonomy shared by the cart, address book and checkout services.

``ValidationError`` is Protean's: its ``messages`` map field names to lists of
messages, which is what the presentation layer renders inline.
"""

from protean.exceptions import ValidationError

__all__ = [
    "AuthenticationRequired",
    "GatewayError",
    "OutOfStock",
    "PartialCommitError",
    "ValidationError",
]


class OutOfStock(Exception):
    """Requested quantity exceeds live inventory."""

    def __init__(self, product_id, requested: int, available: int) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = max(available, 0)
        super().__init__(f"Sorry, only {self.available} items in stock")


class AuthenticationRequired(Exception):
    """An address or order operation was attempted without a signed-in customer."""

    def __init__(self, message: str = "Please sign in to continue") -> None:
        super().__init__(message)


class GatewayError(Exception):
    """A payment processor or remote store call failed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class PartialCommitError(Exception):
    """The order was recorded but a follow-up write failed.

    The order stands; the failed step needs manual reconciliation.
    """

    def __init__(self, order_number: str, step: str, reason: str) -> None:
        self.order_number = order_number
        self.step = step
        self.reason = reason
        super().__init__(f"Order {order_number}: {step} failed ({reason})")
