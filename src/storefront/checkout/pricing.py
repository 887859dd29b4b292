"""Checkout pricing: turns cart lines plus live product data into totals.

The review step freezes the result in a ``CheckoutSnapshot``; the order is
committed from that same snapshot so the amount charged, the amount shown
and the recorded order lines can never drift apart.
"""

from dataclasses import dataclass

from storefront.checkout.methods import ShippingMethod
from storefront.config import CheckoutSettings
from storefront.gateway.port import ProductSnapshot
from storefront.shared.errors import OutOfStock
from storefront.shared.money import effective_unit_price, round_money


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    quantity: int
    unit_price: float
    subtotal: float


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float


@dataclass(frozen=True)
class CheckoutSnapshot:
    lines: tuple[PricedLine, ...]
    totals: CartTotals
    shipping_method: ShippingMethod
    currency: str
    promo_code: str | None = None


def price_lines(cart_lines, products: list[ProductSnapshot]) -> list[PricedLine]:
    """Price ``(product_id, quantity)`` pairs against fresh product data.

    Raises ``OutOfStock`` for a product that is gone or short on stock.
    """
    by_id = {product.id: product for product in products}
    priced = []
    for product_id, quantity in cart_lines:
        product = by_id.get(product_id)
        if product is None:
            raise OutOfStock(product_id, quantity, 0)
        if quantity > product.inventory_count:
            raise OutOfStock(product_id, quantity, product.inventory_count)

        unit_price = effective_unit_price(product.price, product.discount_percentage)
        priced.append(
            PricedLine(
                product_id=product_id,
                name=product.name,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=round_money(unit_price * quantity),
            )
        )
    return priced


def promo_discount(settings: CheckoutSettings, promo_code: str | None) -> float:
    """Percentage off the subtotal for ``promo_code``, clamped to 0-100."""
    if not promo_code:
        return 0.0
    return min(max(settings.promo_codes.get(promo_code, 0.0), 0.0), 100.0)


def shipping_cost(subtotal: float, method: ShippingMethod, settings: CheckoutSettings) -> float:
    threshold = settings.free_shipping_threshold
    if threshold is not None and subtotal >= threshold:
        return 0.0
    return method.price


def compute_totals(
    lines: list[PricedLine],
    method: ShippingMethod,
    settings: CheckoutSettings,
    promo_percentage: float = 0.0,
) -> CartTotals:
    subtotal = round_money(sum(line.subtotal for line in lines))
    tax = round_money(subtotal * settings.tax_rate)
    shipping = shipping_cost(subtotal, method, settings)
    discount = round_money(subtotal * promo_percentage / 100)
    total = round_money(subtotal + tax + shipping - discount)
    return CartTotals(subtotal=subtotal, tax=tax, shipping=shipping, discount=discount, total=total)


def build_snapshot(
    cart_lines,
    products: list[ProductSnapshot],
    method: ShippingMethod,
    settings: CheckoutSettings,
    promo_code: str | None = None,
) -> CheckoutSnapshot:
    lines = price_lines(cart_lines, products)
    promo_percentage = promo_discount(settings, promo_code)
    return CheckoutSnapshot(
        lines=tuple(lines),
        totals=compute_totals(lines, method, settings, promo_percentage),
        shipping_method=method,
        currency=settings.currency,
        promo_code=promo_code,
    )
