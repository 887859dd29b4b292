"""Order aggregate: the write-once record produced by checkout.

The order is built from the review-step ``CheckoutSnapshot`` and never
re-priced. Its identity is the human-readable order number generated at
commit time; the storage row id is assigned by the order store and recorded
once the insert succeeds.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.order.events import OrderPlaced, OrderReconciliationRequired
from storefront.shared.money import round_money


class OrderStatus(Enum):
    PROCESSING = "Processing"


def generate_order_number() -> str:
    return f"ORD-{uuid4().hex[:12].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class AddressSnapshot:
    """Where the order ships, copied at checkout time.

    Later edits or deletion of the saved address do not affect it.
    """

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100)
    phone = String(required=True, max_length=30)
    email = String(max_length=254)


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Amounts shown at review, locked into the order."""

    subtotal = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    tax_total = Float(default=0.0)
    discount_total = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="GHS")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    product_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    price_per_unit = Float(required=True, min_value=0.0)
    subtotal = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(identifier=True, required=True, max_length=32)
    store_id = Identifier()  # assigned by the order store on insert
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PROCESSING.value)
    lines = HasMany(OrderLine)
    shipping_address = ValueObject(AddressSnapshot)
    pricing = ValueObject(OrderPricing)
    shipping_method = String(max_length=50)
    payment_method = String(required=True, max_length=50)
    payment_reference = String(max_length=255)
    created_at = DateTime()

    @invariant.post
    def lines_reconcile_with_total(self):
        if not self.lines or self.pricing is None:
            return
        lines_total = sum(line.subtotal for line in self.lines)
        expected = round_money(
            lines_total + self.pricing.tax_total + self.pricing.shipping_cost - self.pricing.discount_total
        )
        if expected != round_money(self.pricing.grand_total):
            raise ValidationError({"lines": ["Order lines do not add up to the order total"]})

    @property
    def total_amount(self) -> float:
        return self.pricing.grand_total

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, user_id, snapshot, shipping_address, payment_method, payment_reference=None, order_number=None):
        """Build an order from the frozen checkout snapshot.

        Args:
            user_id: The signed-in customer.
            snapshot: ``CheckoutSnapshot`` whose totals were shown at review.
            shipping_address: Dict of ``AddressSnapshot`` fields.
            payment_method: Payment method id chosen in the wizard.
            payment_reference: Processor reference for gateway payments.
        """
        totals = snapshot.totals
        order = cls(
            order_number=order_number or generate_order_number(),
            user_id=user_id,
            status=OrderStatus.PROCESSING.value,
            shipping_address=AddressSnapshot(**shipping_address),
            pricing=OrderPricing(
                subtotal=totals.subtotal,
                shipping_cost=totals.shipping,
                tax_total=totals.tax,
                discount_total=totals.discount,
                grand_total=totals.total,
                currency=snapshot.currency,
            ),
            shipping_method=snapshot.shipping_method.id,
            payment_method=payment_method,
            payment_reference=payment_reference,
            created_at=datetime.now(UTC),
        )
        with atomic_change(order):
            for line in snapshot.lines:
                order.add_lines(
                    OrderLine(
                        product_id=line.product_id,
                        quantity=line.quantity,
                        price_per_unit=line.unit_price,
                        subtotal=line.subtotal,
                    )
                )
        return order

    # -------------------------------------------------------------------
    # Persistence milestones
    # -------------------------------------------------------------------
    def record_stored(self, store_id):
        self.store_id = store_id
        self.raise_(
            OrderPlaced(
                order_number=self.order_number,
                order_id=str(store_id),
                user_id=str(self.user_id),
                total_amount=self.pricing.grand_total,
                currency=self.pricing.currency,
                payment_method=self.payment_method,
                payment_reference=self.payment_reference,
                line_count=len(self.lines),
                placed_at=datetime.now(UTC),
            )
        )

    def flag_for_reconciliation(self, step, reason):
        self.raise_(
            OrderReconciliationRequired(
                order_number=self.order_number,
                order_id=str(self.store_id) if self.store_id else None,
                step=step,
                reason=reason,
            )
        )

    # -------------------------------------------------------------------
    # Storage records
    # -------------------------------------------------------------------
    def to_record(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "order_number": self.order_number,
            "status": self.status,
            "total_amount": self.pricing.grand_total,
            "subtotal": self.pricing.subtotal,
            "tax": self.pricing.tax_total,
            "shipping_cost": self.pricing.shipping_cost,
            "discount": self.pricing.discount_total,
            "currency": self.pricing.currency,
            "shipping_address": self.shipping_address.to_dict(),
            "shipping_method": self.shipping_method,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "created_at": self.created_at.isoformat(),
        }

    def line_records(self) -> list[dict]:
        return [
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "price_per_unit": line.price_per_unit,
                "subtotal": line.subtotal,
            }
            for line in self.lines
        ]
