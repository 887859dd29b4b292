"""Order commit: turns a reviewed checkout into durable order records.

The steps run strictly in order:

1. Build the Order (new order number) from the review snapshot.
2. Insert the order record; the store assigns its id.
3. Insert one line per snapshot line, priced as displayed.
4. A failed line insert does not roll the order back; the order is flagged
   for reconciliation and the failure is reported.
5. Save the shipping address when the customer opted in and it is not
   already in their address book.
6. Clear the cart, only if 2 and 3 both succeeded.
"""

from dataclasses import dataclass

import structlog

from storefront.addresses.controller import AddressSelectionController, FetchState
from storefront.cart.store import CartStore
from storefront.checkout.forms import ShippingForm
from storefront.checkout.pricing import CheckoutSnapshot
from storefront.gateway.port import OrderStore
from storefront.order.order import Order
from storefront.shared.errors import GatewayError, PartialCommitError
from storefront.shared.observable import Observable
from storefront.shared.result import OperationResult
from storefront.shared.session import Customer

logger = structlog.get_logger(__name__)

ORDER_LINES_STEP = "order_lines"
SAVE_ADDRESS_STEP = "save_address"


@dataclass(frozen=True)
class OrderConfirmation:
    order_number: str
    order_id: str
    total: float
    currency: str
    estimated_delivery: str
    payment_method: str
    warnings: tuple[PartialCommitError, ...] = ()

    @property
    def needs_reconciliation(self) -> bool:
        return bool(self.warnings)

    @property
    def lines_recorded(self) -> bool:
        return not any(w.step == ORDER_LINES_STEP for w in self.warnings)


class OrderPlacement(Observable):
    """Runs the commit sequence and publishes the Order's domain events."""

    def __init__(
        self,
        order_store: OrderStore,
        addresses: AddressSelectionController,
        cart_store: CartStore,
    ) -> None:
        super().__init__()
        self._order_store = order_store
        self._addresses = addresses
        self._cart_store = cart_store

    async def remember_address(self, form: ShippingForm) -> OperationResult:
        """Add the form's address to the address book unless already there."""
        if self._addresses.state is not FetchState.READY:
            await self._addresses.fetch_addresses()
        if any(form.matches(address) for address in self._addresses.addresses):
            logger.debug("Shipping address already saved")
            return OperationResult.ok()
        return await self._addresses.add_address(form.address_fields())

    async def commit(
        self,
        customer: Customer,
        snapshot: CheckoutSnapshot,
        shipping: ShippingForm,
        payment_method: str,
        payment_reference: str | None = None,
    ) -> OrderConfirmation:
        """Record the order.

        Raises ``GatewayError`` only when the order record itself could not be
        inserted, in which case nothing was written and the cart is intact.
        """
        order = Order.place(
            user_id=customer.user_id,
            snapshot=snapshot,
            shipping_address=shipping.address_fields(),
            payment_method=payment_method,
            payment_reference=payment_reference,
        )
        log = logger.bind(order_number=order.order_number, user_id=customer.user_id)
        warnings: list[PartialCommitError] = []

        try:
            store_id = await self._order_store.insert_order(order.to_record())
        except GatewayError as exc:
            log.error("Order insert failed", error=exc.reason)
            raise
        order.record_stored(store_id)
        log = log.bind(order_id=store_id)
        log.info("Order record inserted", total=order.total_amount)

        try:
            await self._order_store.insert_order_lines(store_id, order.line_records())
        except GatewayError as exc:
            log.error("Order line insert failed, order needs reconciliation", error=exc.reason)
            order.flag_for_reconciliation(ORDER_LINES_STEP, exc.reason)
            warnings.append(PartialCommitError(order.order_number, ORDER_LINES_STEP, exc.reason))
        else:
            log.info("Order lines inserted", count=len(order.lines))

        if shipping.save_address:
            result = await self.remember_address(shipping)
            if result.success:
                log.info("Shipping address saved")
            else:
                log.error("Shipping address could not be saved", error=result.message)
                warnings.append(PartialCommitError(order.order_number, SAVE_ADDRESS_STEP, result.message))

        confirmation = OrderConfirmation(
            order_number=order.order_number,
            order_id=store_id,
            total=order.total_amount,
            currency=snapshot.currency,
            estimated_delivery=snapshot.shipping_method.estimated_days,
            payment_method=payment_method,
            warnings=tuple(warnings),
        )

        if confirmation.lines_recorded:
            self._cart_store.clear()
            log.info("Cart cleared after order commit")
        else:
            log.warning("Cart kept because order lines were not recorded")

        events = list(order._events)
        order._events.clear()
        self._notify(events)
        return confirmation
