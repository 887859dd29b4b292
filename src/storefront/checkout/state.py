"""Checkout wizard state."""

from dataclasses import dataclass, field
from enum import Enum

from storefront.checkout.forms import CardDetails, ShippingForm
from storefront.checkout.methods import DEFAULT_PAYMENT_METHOD
from storefront.checkout.pricing import CheckoutSnapshot


class CheckoutStep(Enum):
    SHIPPING = "shipping"
    PAYMENT = "payment"
    REVIEW = "review"
    CONFIRMATION = "confirmation"


PREVIOUS_STEP = {
    CheckoutStep.PAYMENT: CheckoutStep.SHIPPING,
    CheckoutStep.REVIEW: CheckoutStep.PAYMENT,
}


@dataclass
class CheckoutState:
    step: CheckoutStep = CheckoutStep.SHIPPING
    shipping: ShippingForm = field(default_factory=ShippingForm)
    card: CardDetails = field(default_factory=CardDetails)
    shipping_method_id: str = "standard"
    payment_method_id: str = DEFAULT_PAYMENT_METHOD
    promo_code: str | None = None
    errors: dict[str, list[str]] = field(default_factory=dict)
    completed: set[CheckoutStep] = field(default_factory=set)
    snapshot: CheckoutSnapshot | None = None
    message: str | None = None
    # Reference of the gateway payment the wizard is waiting on
    payment_reference: str | None = None
    committing: bool = False
    # Bumped on every step change; async results from an older generation are stale
    generation: int = 0

    def move_to(self, step: CheckoutStep) -> None:
        self.step = step
        self.generation += 1

    def clear_errors(self, names) -> None:
        for name in names:
            self.errors.pop(name, None)
