"""Address Selection Controller: local view over the remote address book.

Keeps the signed-in customer's addresses, which one is selected for
checkout, and the fetch state machine:

    UNINITIALIZED → LOADING → READY
                        ↘ ERROR → LOADING (while attempts remain)

Fetching is capped at ``max_fetch_attempts`` network calls per signed-in
session. Once the budget is spent the repository is not called again: a
loaded list is kept as it is, anything else settles in ERROR.

Results of calls that were in flight when the signed-in identity changed
are dropped.
"""

import time
from enum import Enum

import structlog

from storefront.addresses.address import (
    REQUIRED_FIELDS,
    ShippingAddress,
    validate_address_fields,
)
from storefront.gateway.port import AddressRepository
from storefront.shared.errors import AuthenticationRequired, GatewayError, ValidationError
from storefront.shared.observable import Observable
from storefront.shared.result import OperationResult
from storefront.shared.session import UserSession

logger = structlog.get_logger(__name__)

_EDITABLE_FIELDS = set(REQUIRED_FIELDS) | {"address_line2", "country", "email", "is_default"}


class FetchState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


def preferred_address_id(addresses: list[ShippingAddress]):
    """The default address, else the first one, else None."""
    default = next((a for a in addresses if a.is_default), None)
    if default:
        return default.id
    return addresses[0].id if addresses else None


class AddressSelectionController(Observable):
    def __init__(
        self,
        repository: AddressRepository,
        session: UserSession,
        max_fetch_attempts: int = 3,
        loading_timeout: float = 10.0,
        clock=time.monotonic,
    ) -> None:
        super().__init__()
        self._repository = repository
        self._session = session
        self._clock = clock
        self.max_fetch_attempts = max_fetch_attempts
        self.loading_timeout = loading_timeout

        self.state = FetchState.UNINITIALIZED
        self.addresses: list[ShippingAddress] = []
        self.selected_address_id = None
        self.error: str | None = None
        self.fetch_attempts = 0
        self._loading_started_at: float | None = None
        # Bumped by reset(); results of calls started before it are stale
        self._generation = 0

        session.subscribe(lambda _session, _customer: self.reset())

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def default_address(self) -> ShippingAddress | None:
        return next((a for a in self.addresses if a.is_default), None)

    @property
    def retries_exhausted(self) -> bool:
        return self.fetch_attempts >= self.max_fetch_attempts

    def is_loading_slow(self) -> bool:
        """True once a fetch has been in flight longer than ``loading_timeout``.

        Display hint only; it neither cancels nor retries the fetch.
        """
        if self.state is not FetchState.LOADING or self._loading_started_at is None:
            return False
        return self._clock() - self._loading_started_at > self.loading_timeout

    def get_selected_address(self) -> ShippingAddress | None:
        return next((a for a in self.addresses if a.id == self.selected_address_id), None)

    def find(self, address_id) -> ShippingAddress | None:
        return next((a for a in self.addresses if a.id == address_id), None)

    # -------------------------------------------------------------------
    # State helpers
    # -------------------------------------------------------------------
    def reset(self) -> None:
        """Forget everything; used when the signed-in identity changes."""
        self.state = FetchState.UNINITIALIZED
        self.addresses = []
        self.selected_address_id = None
        self.error = None
        self.fetch_attempts = 0
        self._loading_started_at = None
        self._generation += 1
        self._notify()

    def _is_stale(self, generation: int, operation: str) -> bool:
        if self._generation == generation:
            return False
        logger.info("Discarding address result for a previous session", operation=operation)
        return True

    def _fail_fetch(self, message: str) -> None:
        self.state = FetchState.ERROR
        self.error = message
        self._notify()

    def _replace_addresses(self, addresses: list[ShippingAddress]) -> None:
        self.addresses = list(addresses)
        if self.find(self.selected_address_id) is None:
            self.selected_address_id = preferred_address_id(self.addresses)

    # -------------------------------------------------------------------
    # Fetch
    # -------------------------------------------------------------------
    async def fetch_addresses(self) -> OperationResult:
        if self.state is FetchState.READY and self.addresses:
            return OperationResult.ok(self.addresses)
        if self.state is FetchState.LOADING:
            return OperationResult.ok(self.addresses)
        if self.retries_exhausted:
            logger.warning("Address fetch budget exhausted", attempts=self.fetch_attempts)
            if self.state is FetchState.READY:
                return OperationResult.ok(self.addresses)
            self._fail_fetch("Too many attempts to load addresses. Please reload the page.")
            return OperationResult.fail(GatewayError(self.error))

        self.fetch_attempts += 1
        self.state = FetchState.LOADING
        self.error = None
        self._loading_started_at = self._clock()
        self._notify()

        generation = self._generation
        try:
            customer = self._session.require_customer()
            addresses = await self._repository.list_addresses(customer.user_id)
        except AuthenticationRequired as exc:
            self._loading_started_at = None
            self._fail_fetch("User not authenticated. Please sign in to view your addresses.")
            return OperationResult.fail(exc)
        except GatewayError as exc:
            if self._is_stale(generation, "fetch_addresses"):
                return OperationResult.stale()
            logger.warning("Address fetch failed", attempt=self.fetch_attempts, error=exc.reason)
            self._loading_started_at = None
            self._fail_fetch(exc.reason)
            return OperationResult.fail(exc)
        if self._is_stale(generation, "fetch_addresses"):
            return OperationResult.stale()

        self._loading_started_at = None
        self.addresses = list(addresses)
        self.selected_address_id = preferred_address_id(self.addresses)
        self.state = FetchState.READY
        self._notify()
        return OperationResult.ok(self.addresses)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    async def add_address(self, data: dict) -> OperationResult:
        """Create an address; the first one a customer adds is always default."""
        try:
            validate_address_fields(data)
            customer = self._session.require_customer()
        except (ValidationError, AuthenticationRequired) as exc:
            return OperationResult.fail(exc)

        generation = self._generation
        if self.state is not FetchState.READY:
            # Without a loaded list we cannot tell whether this is the first address
            loaded = await self.fetch_addresses()
            if loaded.is_stale or self._is_stale(generation, "add_address"):
                return OperationResult.stale()
            if self.state is not FetchState.READY:
                return OperationResult.fail(loaded.error or GatewayError("Addresses are still loading"))

        fields = {key: value for key, value in data.items() if key in _EDITABLE_FIELDS}
        fields["is_default"] = True if not self.addresses else bool(fields.get("is_default", False))
        try:
            created = await self._repository.create(customer.user_id, fields)
        except GatewayError as exc:
            if self._is_stale(generation, "add_address"):
                return OperationResult.stale()
            logger.warning("Could not add address", error=exc.reason)
            self.error = exc.reason
            self._notify()
            return OperationResult.fail(exc)
        if self._is_stale(generation, "add_address"):
            return OperationResult.stale()

        existing = [a.with_default(False) for a in self.addresses] if created.is_default else self.addresses
        self.addresses = existing + [created]
        if created.is_default or self.selected_address_id is None:
            self.selected_address_id = created.id
        self._notify()
        return OperationResult.ok(created)

    async def update_address(self, address_id, patch: dict) -> OperationResult:
        try:
            validate_address_fields(patch, partial=True)
            customer = self._session.require_customer()
        except (ValidationError, AuthenticationRequired) as exc:
            return OperationResult.fail(exc)

        fields = {key: value for key, value in patch.items() if key in _EDITABLE_FIELDS}
        generation = self._generation
        try:
            updated = await self._repository.update(address_id, customer.user_id, fields)
        except GatewayError as exc:
            if self._is_stale(generation, "update_address"):
                return OperationResult.stale()
            logger.warning("Could not update address", address_id=address_id, error=exc.reason)
            return OperationResult.fail(exc)
        if self._is_stale(generation, "update_address"):
            return OperationResult.stale()

        addresses = []
        for address in self.addresses:
            if address.id == updated.id:
                addresses.append(updated)
            elif updated.is_default and address.is_default:
                addresses.append(address.with_default(False))
            else:
                addresses.append(address)
        self.addresses = addresses
        self._notify()
        return OperationResult.ok(updated)

    async def delete_address(self, address_id) -> OperationResult:
        try:
            customer = self._session.require_customer()
        except AuthenticationRequired as exc:
            return OperationResult.fail(exc)

        generation = self._generation
        try:
            await self._repository.delete(address_id, customer.user_id)
        except GatewayError as exc:
            if self._is_stale(generation, "delete_address"):
                return OperationResult.stale()
            logger.warning("Could not delete address", address_id=address_id, error=exc.reason)
            return OperationResult.fail(exc)
        if self._is_stale(generation, "delete_address"):
            return OperationResult.stale()

        self.addresses = [a for a in self.addresses if a.id != address_id]
        if self.selected_address_id == address_id:
            self.selected_address_id = preferred_address_id(self.addresses)
        self._notify()
        return OperationResult.ok(True)

    async def set_default_address(self, address_id) -> OperationResult:
        """Promote one address and demote the rest, all or nothing."""
        try:
            customer = self._session.require_customer()
        except AuthenticationRequired as exc:
            return OperationResult.fail(exc)

        generation = self._generation
        try:
            addresses = await self._repository.set_default(address_id, customer.user_id)
        except GatewayError as exc:
            if self._is_stale(generation, "set_default_address"):
                return OperationResult.stale()
            logger.warning("Could not change default address", address_id=address_id, error=exc.reason)
            return OperationResult.fail(exc)
        if self._is_stale(generation, "set_default_address"):
            return OperationResult.stale()

        self._replace_addresses(addresses)
        self._notify()
        return OperationResult.ok(self.find(address_id))

    def select_address(self, address_id) -> OperationResult:
        if address_id is not None and self.find(address_id) is None:
            return OperationResult.fail(ValidationError({"address_id": [f"Address {address_id} not found"]}))
        self.selected_address_id = address_id
        self._notify()
        return OperationResult.ok(self.get_selected_address())
