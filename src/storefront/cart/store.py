"""Cart Store: the client-side cart state container.

Wraps the ShoppingCart aggregate with inventory validation, persistence to
the client key/value store and change notification. Every mutating call
re-serializes the whole cart once it resolves, so the stored copy never
drifts from the in-memory one.
"""

import json

import structlog

from storefront.cart.cart import ShoppingCart
from storefront.config import CART_STORAGE_KEY
from storefront.gateway.port import InventoryGateway
from storefront.gateway.storage import KeyValueStore
from storefront.shared.errors import GatewayError, OutOfStock, ValidationError
from storefront.shared.observable import Observable
from storefront.shared.result import OperationResult

logger = structlog.get_logger(__name__)


class CartStore(Observable):
    def __init__(
        self,
        inventory: InventoryGateway,
        storage: KeyValueStore,
        storage_key: str = CART_STORAGE_KEY,
    ) -> None:
        super().__init__()
        self._inventory = inventory
        self._storage = storage
        self._storage_key = storage_key
        self.cart = ShoppingCart.create()

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def rehydrate(self) -> None:
        """Load the cart saved by a previous session, if any.

        A corrupt payload is discarded rather than failing the session.
        """
        raw = self._storage.get(self._storage_key)
        if not raw:
            return

        try:
            self.cart = ShoppingCart.restore(json.loads(raw))
        except (ValueError, TypeError, KeyError, ValidationError) as exc:
            logger.warning("Discarding unreadable stored cart", key=self._storage_key, error=str(exc))
            self._storage.remove(self._storage_key)
            self.cart = ShoppingCart.create()
        self._notify([])

    def _commit(self) -> None:
        self._storage.set(self._storage_key, json.dumps(self.cart.to_storage()))
        events = list(self.cart._events)
        self.cart._events.clear()
        self._notify(events)

    # -------------------------------------------------------------------
    # Derived reads
    # -------------------------------------------------------------------
    @property
    def lines(self):
        return list(self.cart.lines)

    @property
    def item_count(self) -> int:
        return self.cart.item_count

    @property
    def total(self) -> float:
        return self.cart.total

    @property
    def is_empty(self) -> bool:
        return self.cart.is_empty

    def snapshot(self) -> list[tuple[int, int]]:
        """(product_id, quantity) pairs in cart order."""
        return [(line.product_id, line.quantity) for line in self.cart.lines]

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    async def _current_stock(self, product_id):
        products = await self._inventory.lookup([product_id])
        return next((p for p in products if p.id == product_id), None)

    async def add_item(self, product, quantity: int = 1) -> OperationResult:
        """Add ``quantity`` of ``product`` after checking live stock.

        ``product`` is anything with an ``id`` (typically a ProductSnapshot
        from the listing page); price data is taken from the fresh lookup.
        """
        if quantity < 1:
            return OperationResult.fail(ValidationError({"quantity": ["Quantity must be at least 1"]}))

        try:
            current = await self._current_stock(product.id)
        except GatewayError as exc:
            logger.warning("Could not verify product availability", product_id=product.id, error=exc.reason)
            return OperationResult.fail(exc)

        in_cart = self.cart.quantity_of(product.id)
        available = current.inventory_count if current else 0
        if in_cart + quantity > available:
            logger.info(
                "Rejected add beyond stock",
                product_id=product.id,
                requested=quantity,
                in_cart=in_cart,
                available=available,
            )
            return OperationResult.fail(OutOfStock(product.id, quantity, available - in_cart))

        self.cart.add_line(
            product_id=product.id,
            quantity=quantity,
            name=current.name or getattr(product, "name", None),
            unit_price=current.price,
            discount_percentage=current.discount_percentage,
        )
        self._commit()
        return OperationResult.ok(self.cart.line_for(product.id))

    async def update_quantity(self, product_id, quantity: int) -> OperationResult:
        """Set a line's quantity.

        Zero or less removes the line. Above available stock the line is
        clamped to what is available and ``OutOfStock`` is reported.
        """
        if quantity <= 0:
            return self.remove_item(product_id)

        if self.cart.line_for(product_id) is None:
            return OperationResult.ok()

        try:
            current = await self._current_stock(product_id)
        except GatewayError as exc:
            logger.warning("Could not verify product availability", product_id=product_id, error=exc.reason)
            return OperationResult.fail(exc)

        # The line may have been removed while the lookup was in flight
        if self.cart.line_for(product_id) is None:
            return OperationResult.ok()

        available = current.inventory_count if current else 0
        if quantity <= available:
            self.cart.set_quantity(product_id, quantity)
            self._commit()
            return OperationResult.ok(self.cart.line_for(product_id))

        logger.info("Clamped quantity to stock", product_id=product_id, requested=quantity, available=available)
        self.cart.set_quantity(product_id, available)
        self._commit()
        return OperationResult.fail(OutOfStock(product_id, quantity, available), value=self.cart.line_for(product_id))

    def remove_item(self, product_id) -> OperationResult:
        """Remove a line; removing an absent product is a no-op."""
        if self.cart.remove_line(product_id):
            self._commit()
        return OperationResult.ok()

    def clear(self) -> None:
        """Empty the cart. Only called after an order has been recorded."""
        self.cart.clear()
        self._commit()
