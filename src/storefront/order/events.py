"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """An order was recorded by the order store."""

    __version__ = 1

    order_number = String(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    total_amount = Float(required=True)
    currency = String(required=True)
    payment_method = String(required=True)
    payment_reference = String()
    line_count = Integer(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderReconciliationRequired:
    """The order stands but a follow-up write failed and needs repair."""

    __version__ = 1

    order_number = String(required=True)
    order_id = Identifier()
    step = String(required=True)
    reason = String(required=True)
