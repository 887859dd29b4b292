"""Checkout Orchestrator: the shipping → payment → review wizard.

Each forward transition validates only the step being left. Editing a
completed step un-completes it, so the wizard can never reach review (and
therefore order commit) with an unvalidated step behind it.

Async work started for one step is never cancelled, but its result is
dropped when the wizard has moved since the work began: every step change
bumps ``CheckoutState.generation`` and async operations compare it after
each await.

Payment methods branch three ways:

- card entry: card details validated before review, commit at review
- deferred redirect: no local validation, commit at review
- external gateway: review hands the amount to the payment gateway and the
  order is committed from the gateway's success callback only
"""

from collections.abc import Callable
from dataclasses import replace
from datetime import date
from functools import partial
from uuid import uuid4

import structlog

from storefront.addresses.controller import AddressSelectionController
from storefront.cart.store import CartStore
from storefront.checkout.forms import ShippingForm
from storefront.checkout.methods import PAYMENT_METHODS, SHIPPING_METHODS, PaymentKind, PaymentMethod, ShippingMethod
from storefront.checkout.pricing import CheckoutSnapshot, build_snapshot, compute_totals, promo_discount
from storefront.checkout.state import PREVIOUS_STEP, CheckoutState, CheckoutStep
from storefront.config import CheckoutSettings
from storefront.gateway.port import InventoryGateway, OrderStore, PaymentGateway, PaymentRequest, to_minor_units
from storefront.order.placement import ORDER_LINES_STEP, OrderConfirmation, OrderPlacement
from storefront.shared.errors import AuthenticationRequired, GatewayError, OutOfStock, ValidationError
from storefront.shared.observable import Observable
from storefront.shared.result import OperationResult
from storefront.shared.session import Customer, UserSession

logger = structlog.get_logger(__name__)

_CARD_FIELDS = {"card_number", "name_on_card", "expiry_date", "cvv"}


class CheckoutOrchestrator(Observable):
    def __init__(
        self,
        cart_store: CartStore,
        addresses: AddressSelectionController,
        inventory: InventoryGateway,
        payment_gateway: PaymentGateway,
        order_store: OrderStore,
        session: UserSession,
        settings: CheckoutSettings | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__()
        self.settings = settings or CheckoutSettings()
        self._cart_store = cart_store
        self._addresses = addresses
        self._inventory = inventory
        self._payment_gateway = payment_gateway
        self._session = session
        self._today = today
        self.placement = OrderPlacement(order_store, addresses, cart_store)

        self.state = self._fresh_state()
        self.confirmation: OrderConfirmation | None = None
        # Gateway payments initiated but not yet resolved, by reference
        self._open_payments: dict[str, tuple] = {}
        # A captured payment whose order could not be recorded; retried instead of charging again
        self._unrecorded_payment: tuple | None = None

    def _fresh_state(self) -> CheckoutState:
        return CheckoutState(shipping_method_id=self.settings.default_shipping_method)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def step(self) -> CheckoutStep:
        return self.state.step

    @property
    def shipping_method(self) -> ShippingMethod:
        return SHIPPING_METHODS[self.state.shipping_method_id]

    @property
    def payment_method(self) -> PaymentMethod:
        return PAYMENT_METHODS[self.state.payment_method_id]

    @property
    def snapshot(self) -> CheckoutSnapshot | None:
        return self.state.snapshot

    @property
    def card_last4(self) -> str | None:
        if self.payment_method.kind is not PaymentKind.CARD:
            return None
        return self.state.card.last4 or None

    @property
    def awaiting_payment(self) -> bool:
        return self.state.payment_reference is not None

    @property
    def has_unrecorded_payment(self) -> bool:
        return self._unrecorded_payment is not None

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _is_stale(self, generation: int, operation: str) -> bool:
        if self.state.generation == generation:
            return False
        logger.info("Discarding stale checkout result", operation=operation, step=self.state.step.value)
        return True

    def _fail(self, errors: dict[str, list[str]]) -> OperationResult:
        self.state.errors = errors
        self._notify()
        return OperationResult.fail(ValidationError(errors))

    def _require_step(self, step: CheckoutStep) -> OperationResult | None:
        if self.state.step is step:
            return None
        return OperationResult.fail(
            ValidationError({"step": [f"Not available on the {self.state.step.value} step"]})
        )

    def _require_unlocked(self) -> OperationResult | None:
        """Refuse changes to the priced order once payment or commit has begun."""
        if self.state.committing or self.awaiting_payment:
            return OperationResult.fail(ValidationError({"order": ["Your order is already being placed"]}))
        return None

    def _uncomplete(self, step: CheckoutStep) -> None:
        self.state.completed.discard(step)

    def _reprice(self) -> None:
        """Recompute totals for a changed shipping method or promo code.

        Uses the lines already in the snapshot; stock is re-checked when the
        customer next continues to review.
        """
        snapshot = self.state.snapshot
        if snapshot is None:
            return
        percentage = promo_discount(self.settings, self.state.promo_code)
        self.state.snapshot = replace(
            snapshot,
            totals=compute_totals(list(snapshot.lines), self.shipping_method, self.settings, percentage),
            shipping_method=self.shipping_method,
            promo_code=self.state.promo_code,
        )

    async def _build_snapshot(self) -> CheckoutSnapshot:
        cart_lines = self._cart_store.snapshot()
        products = await self._inventory.lookup([product_id for product_id, _ in cart_lines])
        return build_snapshot(cart_lines, products, self.shipping_method, self.settings, self.state.promo_code)

    # -------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------
    async def start(self) -> OperationResult:
        """Open checkout: refuse an empty cart, pre-fill, price the cart."""
        if self._cart_store.is_empty:
            return OperationResult.fail(ValidationError({"cart": ["Your cart is empty"]}))

        if self.state.step is CheckoutStep.CONFIRMATION:
            self.abandon()
        self.confirmation = None
        generation = self.state.generation
        customer = self._session.customer
        form = self.state.shipping
        if customer is not None:
            form.email = form.email or customer.email or ""
            form.first_name = form.first_name or customer.first_name or ""
            form.last_name = form.last_name or customer.last_name or ""

            result = await self._addresses.fetch_addresses()
            if self._is_stale(generation, "start"):
                return OperationResult.stale()
            if not result.success:
                logger.info("Checkout continuing without saved addresses", error=result.message)
            selected = self._addresses.get_selected_address()
            if selected is not None and not form.address_line1:
                form.fill_from(selected)

        try:
            snapshot = await self._build_snapshot()
        except (GatewayError, OutOfStock) as exc:
            if self._is_stale(generation, "start"):
                return OperationResult.stale()
            logger.warning("Could not price cart for checkout", error=str(exc))
            self.state.message = str(exc)
            self._notify()
            return OperationResult.fail(exc)
        if self._is_stale(generation, "start"):
            return OperationResult.stale()

        self.state.snapshot = snapshot
        self._notify()
        return OperationResult.ok(snapshot)

    def abandon(self) -> None:
        """Leave checkout. The cart is untouched.

        A gateway payment already opened stays resolvable: if it later
        succeeds the order is still recorded.
        """
        generation = self.state.generation
        self.state = self._fresh_state()
        self.state.generation = generation + 1
        self._notify()

    # -------------------------------------------------------------------
    # Shipping step
    # -------------------------------------------------------------------
    def update_shipping(self, **values) -> OperationResult:
        unknown = set(values) - ShippingForm.field_names()
        if unknown:
            return self._fail({name: ["Unknown field"] for name in sorted(unknown)})
        denied = self._require_step(CheckoutStep.SHIPPING)
        if denied:
            return denied

        for name, value in values.items():
            setattr(self.state.shipping, name, value)
        self.state.clear_errors(values)
        self._uncomplete(CheckoutStep.SHIPPING)
        self._notify()
        return OperationResult.ok(self.state.shipping)

    def select_saved_address(self, address_id) -> OperationResult:
        denied = self._require_step(CheckoutStep.SHIPPING)
        if denied:
            return denied
        result = self._addresses.select_address(address_id)
        if not result.success or result.value is None:
            return result

        if self.state.shipping.fill_from(result.value):
            self.state.errors = {}
            self._uncomplete(CheckoutStep.SHIPPING)
            self._notify()
        return result

    def select_shipping_method(self, method_id: str) -> OperationResult:
        if method_id not in SHIPPING_METHODS:
            return self._fail({"shipping_method": [f"Unknown shipping method {method_id}"]})
        denied = self._require_unlocked()
        if denied:
            return denied
        self.state.shipping_method_id = method_id
        self._reprice()
        self._notify()
        return OperationResult.ok(self.shipping_method)

    def apply_promo_code(self, code: str | None) -> OperationResult:
        code = (code or "").strip().upper() or None
        if code is not None and code not in self.settings.promo_codes:
            return self._fail({"promo_code": ["Invalid promo code"]})
        denied = self._require_unlocked()
        if denied:
            return denied

        self.state.promo_code = code
        self.state.clear_errors(["promo_code"])
        self._reprice()
        self._notify()
        return OperationResult.ok(self.state.snapshot)

    async def continue_to_payment(self) -> OperationResult:
        denied = self._require_step(CheckoutStep.SHIPPING)
        if denied:
            return denied

        errors = self.state.shipping.validate()
        if errors:
            return self._fail(errors)
        self.state.errors = {}

        warnings = []
        if self.state.shipping.save_address and self._session.is_authenticated:
            generation = self.state.generation
            saved = await self.placement.remember_address(self.state.shipping)
            if not saved.success:
                logger.warning("Could not save shipping address", error=saved.message)
                warnings.append(saved.error)
            if self._is_stale(generation, "continue_to_payment"):
                return OperationResult.stale()

        self.state.completed.add(CheckoutStep.SHIPPING)
        self.state.move_to(CheckoutStep.PAYMENT)
        self._notify()
        return OperationResult.ok(self.state.step, warnings=warnings)

    # -------------------------------------------------------------------
    # Payment step
    # -------------------------------------------------------------------
    def select_payment_method(self, method_id: str) -> OperationResult:
        if method_id not in PAYMENT_METHODS:
            return self._fail({"payment_method": [f"Unknown payment method {method_id}"]})
        denied = self._require_step(CheckoutStep.PAYMENT)
        if denied:
            return denied

        self.state.payment_method_id = method_id
        self.state.clear_errors(_CARD_FIELDS)
        self._uncomplete(CheckoutStep.PAYMENT)
        self._notify()
        return OperationResult.ok(self.payment_method)

    def update_card_details(self, **values) -> OperationResult:
        unknown = set(values) - _CARD_FIELDS
        if unknown:
            return self._fail({name: ["Unknown field"] for name in sorted(unknown)})
        denied = self._require_step(CheckoutStep.PAYMENT)
        if denied:
            return denied

        self.state.card = replace(self.state.card, **values)
        self.state.clear_errors(values)
        self._uncomplete(CheckoutStep.PAYMENT)
        self._notify()
        return OperationResult.ok()

    async def continue_to_review(self) -> OperationResult:
        denied = self._require_step(CheckoutStep.PAYMENT)
        if denied:
            return denied

        if self.payment_method.kind is PaymentKind.CARD:
            errors = self.state.card.validate(self._today())
            if errors:
                return self._fail(errors)
        self.state.errors = {}
        self.state.message = None

        generation = self.state.generation
        try:
            snapshot = await self._build_snapshot()
        except (GatewayError, OutOfStock) as exc:
            if self._is_stale(generation, "continue_to_review"):
                return OperationResult.stale()
            logger.warning("Could not price cart for review", error=str(exc))
            self.state.message = str(exc)
            self._notify()
            return OperationResult.fail(exc)
        if self._is_stale(generation, "continue_to_review"):
            return OperationResult.stale()

        self.state.snapshot = snapshot
        self.state.completed.add(CheckoutStep.PAYMENT)
        self.state.move_to(CheckoutStep.REVIEW)
        self._notify()
        return OperationResult.ok(snapshot)

    def go_back(self) -> OperationResult:
        previous = PREVIOUS_STEP.get(self.state.step)
        if previous is None:
            return OperationResult.fail(ValidationError({"step": ["There is no previous step"]}))
        denied = self._require_unlocked()
        if denied:
            return denied
        self.state.message = None
        self.state.move_to(previous)
        self._notify()
        return OperationResult.ok(previous)

    # -------------------------------------------------------------------
    # Review step
    # -------------------------------------------------------------------
    async def place_order(self) -> OperationResult:
        """Commit the order, or hand over to the payment gateway first."""
        denied = self._require_step(CheckoutStep.REVIEW)
        if denied:
            return denied
        if not {CheckoutStep.SHIPPING, CheckoutStep.PAYMENT} <= self.state.completed or self.state.snapshot is None:
            return OperationResult.fail(ValidationError({"step": ["Complete shipping and payment first"]}))
        denied = self._require_unlocked()
        if denied:
            return denied
        if self.confirmation is not None:
            return OperationResult.fail(
                ValidationError({"order": [f"Order {self.confirmation.order_number} has already been placed"]})
            )

        if self._unrecorded_payment is not None:
            customer, snapshot, shipping, payment_method, gateway_reference = self._unrecorded_payment
            logger.info("Retrying order for captured payment", gateway_reference=gateway_reference)
            return await self._commit(customer, snapshot, shipping, payment_method, gateway_reference)

        try:
            customer = self._session.require_customer()
        except AuthenticationRequired as exc:
            return OperationResult.fail(exc)

        shipping = replace(self.state.shipping)
        if self.payment_method.kind is PaymentKind.GATEWAY:
            return await self._start_gateway_payment(customer, self.state.snapshot, shipping)
        return await self._commit(customer, self.state.snapshot, shipping, self.state.payment_method_id)

    async def _commit(self, customer: Customer, snapshot, shipping, payment_method, payment_reference=None):
        self.state.committing = True
        self._notify()
        try:
            confirmation = await self.placement.commit(customer, snapshot, shipping, payment_method, payment_reference)
        except GatewayError as exc:
            self.state.committing = False
            if payment_reference is not None:
                self._unrecorded_payment = (customer, snapshot, shipping, payment_method, payment_reference)
                logger.error(
                    "Payment captured but order not recorded", gateway_reference=payment_reference, error=exc.reason
                )
                self.state.message = (
                    f"Your payment was received but we could not place your order: {exc.reason}. "
                    "Placing the order again will not charge you twice."
                )
            else:
                self.state.message = f"We could not place your order: {exc.reason}"
            self._notify()
            return OperationResult.fail(exc)

        self.state.committing = False
        self._unrecorded_payment = None
        self.confirmation = confirmation
        if not confirmation.lines_recorded:
            error = next(w for w in confirmation.warnings if w.step == ORDER_LINES_STEP)
            self.state.message = (
                f"Order {confirmation.order_number} was received but needs review by our team."
            )
            self._notify()
            return OperationResult.fail(error, value=confirmation)

        self.state.message = None
        self.state.move_to(CheckoutStep.CONFIRMATION)
        self._notify()
        return OperationResult.ok(confirmation, warnings=confirmation.warnings)

    # -------------------------------------------------------------------
    # External gateway
    # -------------------------------------------------------------------
    async def _start_gateway_payment(self, customer: Customer, snapshot: CheckoutSnapshot, shipping: ShippingForm):
        reference = f"SF-{uuid4().hex[:16]}"
        email = shipping.email or customer.email or ""
        name = f"{shipping.first_name} {shipping.last_name}".strip() or None
        request = PaymentRequest(
            amount=to_minor_units(snapshot.totals.total),
            currency=snapshot.currency,
            email=email,
            reference=reference,
            customer_name=name,
        )

        self._open_payments[reference] = (customer, snapshot, shipping, self.state.payment_method_id)
        self.state.payment_reference = reference
        self.state.message = None
        self._notify()
        logger.info("Payment initiated", reference=reference, amount=request.amount, currency=request.currency)

        try:
            await self._payment_gateway.initiate(
                request,
                on_success=partial(self._on_payment_success, reference),
                on_cancel=partial(self._on_payment_cancel, reference),
                on_error=partial(self._on_payment_error, reference),
            )
        except GatewayError as exc:
            logger.warning("Payment could not be initiated", reference=reference, error=exc.reason)
            self._open_payments.pop(reference, None)
            self._return_to_payment(reference, f"Payment could not be started: {exc.reason}")
            return OperationResult.fail(exc)
        return OperationResult.ok(request)

    def _claim_payment(self, reference: str, outcome: str):
        pending = self._open_payments.pop(reference, None)
        if pending is None:
            logger.warning("Ignoring duplicate payment callback", reference=reference, outcome=outcome)
        return pending

    def _return_to_payment(self, reference: str, message: str) -> None:
        if self.state.payment_reference != reference:
            logger.warning("Payment outcome arrived after checkout moved on", reference=reference)
            return
        self.state.payment_reference = None
        self.state.message = message
        self._uncomplete(CheckoutStep.PAYMENT)
        self.state.move_to(CheckoutStep.PAYMENT)
        self._notify()

    async def _on_payment_success(self, reference: str, gateway_reference: str) -> None:
        pending = self._claim_payment(reference, "success")
        if pending is None:
            return
        customer, snapshot, shipping, payment_method = pending
        logger.info("Payment confirmed", reference=reference, gateway_reference=gateway_reference)
        if self.state.payment_reference == reference:
            self.state.payment_reference = None
        # Money has been taken; record the order even if checkout was abandoned meanwhile
        await self._commit(customer, snapshot, shipping, payment_method, gateway_reference)

    async def _on_payment_cancel(self, reference: str) -> None:
        if self._claim_payment(reference, "cancel") is None:
            return
        logger.info("Payment cancelled", reference=reference)
        self._return_to_payment(reference, "Payment was cancelled. Your cart has not been changed.")

    async def _on_payment_error(self, reference: str, reason: str) -> None:
        if self._claim_payment(reference, "error") is None:
            return
        logger.warning("Payment failed", reference=reference, reason=reason)
        self._return_to_payment(reference, f"Payment failed: {reason}")
