"""Shopping Cart aggregate: the in-memory cart held by a browsing session.

Lines are keyed by product id and carry the product data last fetched from
the inventory source, so totals can be derived without a network call. The
aggregate only enforces its own shape (one line per product, positive
quantities); stock checks belong to the CartStore, which talks to inventory.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Integer, String

from storefront.cart.events import CartCleared, CartLineAdded, CartLineQuantityChanged, CartLineRemoved
from storefront.domain import storefront
from storefront.shared.money import effective_unit_price, round_money


@storefront.entity(part_of="ShoppingCart")
class CartLine:
    product_id = Integer(required=True)
    quantity = Integer(required=True, min_value=1)
    name = String(max_length=255)
    unit_price = Float(default=0.0, min_value=0.0)
    discount_percentage = Float(min_value=0.0, max_value=100.0)
    added_at = DateTime()

    @property
    def effective_price(self) -> float:
        return effective_unit_price(self.unit_price or 0.0, self.discount_percentage)

    @property
    def line_total(self) -> float:
        return round_money(self.effective_price * self.quantity)


@storefront.aggregate
class ShoppingCart:
    lines = HasMany(CartLine)
    updated_at = DateTime()

    @invariant.post
    def one_line_per_product(self):
        product_ids = [line.product_id for line in self.lines]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["A product can only appear once in the cart"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def create(cls):
        return cls(updated_at=datetime.now(UTC))

    @classmethod
    def restore(cls, payload):
        """Rebuild a cart from its stored form without raising events.

        Raises ``ValidationError`` (or ``TypeError``/``KeyError``) when the
        payload is not a list of valid lines.
        """
        if not isinstance(payload, list):
            raise ValidationError({"lines": ["Stored cart must be a list of lines"]})

        product_ids = [int(entry["product_id"]) for entry in payload]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["A product can only appear once in the cart"]})

        cart = cls.create()
        for entry in payload:
            cart.add_lines(
                CartLine(
                    product_id=int(entry["product_id"]),
                    quantity=int(entry["quantity"]),
                    name=entry.get("name"),
                    unit_price=entry.get("unit_price") or 0.0,
                    discount_percentage=entry.get("discount_percentage"),
                )
            )
        return cart

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line_for(self, product_id):
        return next((line for line in self.lines if line.product_id == product_id), None)

    def quantity_of(self, product_id) -> int:
        line = self.line_for(product_id)
        return line.quantity if line else 0

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total(self) -> float:
        return round_money(sum(line.line_total for line in self.lines))

    @property
    def is_empty(self) -> bool:
        return not self.lines

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_line(self, product_id, quantity, name=None, unit_price=None, discount_percentage=None):
        """Add a product, merging into its existing line when present."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = self.line_for(product_id)
        if existing:
            existing.quantity += quantity
            if unit_price is not None:
                existing.unit_price = unit_price
                existing.discount_percentage = discount_percentage
            if name:
                existing.name = name
            new_quantity = existing.quantity
        else:
            self.add_lines(
                CartLine(
                    product_id=product_id,
                    quantity=quantity,
                    name=name,
                    unit_price=unit_price or 0.0,
                    discount_percentage=discount_percentage,
                    added_at=now,
                )
            )
            new_quantity = quantity

        self.updated_at = now
        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                product_id=product_id,
                quantity=quantity,
                new_quantity=new_quantity,
            )
        )

    def set_quantity(self, product_id, quantity):
        """Set a line to an exact quantity. Zero or less removes the line."""
        if quantity <= 0:
            return self.remove_line(product_id)

        line = self.line_for(product_id)
        if line is None:
            raise ValidationError({"product_id": [f"Product {product_id} is not in the cart"]})

        previous_quantity = line.quantity
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartLineQuantityChanged(
                cart_id=str(self.id),
                product_id=product_id,
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return True

    def remove_line(self, product_id):
        """Remove a line. Returns False (and does nothing) if it is absent."""
        line = self.line_for(product_id)
        if line is None:
            return False

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartLineRemoved(cart_id=str(self.id), product_id=product_id))
        return True

    def clear(self):
        line_count = len(self.lines)
        for line in list(self.lines):
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.id), line_count=line_count))

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------
    def to_storage(self) -> list[dict]:
        return [
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "name": line.name,
                "unit_price": line.unit_price,
                "discount_percentage": line.discount_percentage,
            }
            for line in self.lines
        ]
