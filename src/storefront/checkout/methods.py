"""Shipping and payment methods offered at checkout."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ShippingMethod:
    id: str
    name: str
    description: str
    price: float
    estimated_days: str


SHIPPING_METHODS = {
    method.id: method
    for method in (
        ShippingMethod("economy", "Economy Shipping", "Slower but budget-friendly option", 3.99, "5-7 business days"),
        ShippingMethod("standard", "Standard Shipping", "The most popular option", 5.99, "3-5 business days"),
        ShippingMethod("express", "Express Shipping", "Fastest delivery option available", 12.99, "1-2 business days"),
    )
}


class PaymentKind(Enum):
    CARD = "card"  # card details entered and validated in the wizard
    GATEWAY = "gateway"  # external payment page, order committed on its success callback
    REDIRECT = "redirect"  # third-party wallet, no local validation


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    name: str
    kind: PaymentKind


PAYMENT_METHODS = {
    method.id: method
    for method in (
        PaymentMethod("paystack", "Paystack", PaymentKind.GATEWAY),
        PaymentMethod("credit-card", "Credit / Debit Card", PaymentKind.CARD),
        PaymentMethod("paypal", "PayPal", PaymentKind.REDIRECT),
        PaymentMethod("apple-pay", "Apple Pay", PaymentKind.REDIRECT),
    )
}

DEFAULT_PAYMENT_METHOD = "credit-card"
