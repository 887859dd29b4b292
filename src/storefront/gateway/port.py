"""Ports for the external collaborators of the storefront core.

The core never talks to a database or a payment processor directly; it goes
through these interfaces so adapters can be swapped (in-process fakes for
development and tests, real HTTP clients in production) without touching the
cart, address or checkout code.

All calls are ``async``. Adapters raise ``GatewayError`` on failure; the
services convert that into an ``OperationResult`` at their boundary.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from storefront.addresses.address import ShippingAddress

SuccessCallback = Callable[[str], Awaitable[None]]
CancelCallback = Callable[[], Awaitable[None]]
ErrorCallback = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class ProductSnapshot:
    """Current price and stock of a product as reported by the inventory source."""

    id: int
    price: float
    inventory_count: int
    discount_percentage: float | None = None
    name: str = ""


@dataclass(frozen=True)
class PaymentRequest:
    """What the payment processor is asked to collect.

    ``amount`` is an integer in minor currency units (pesewas, kobo, cents).
    """

    amount: int
    currency: str
    email: str
    reference: str
    customer_name: str | None = None


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


class InventoryGateway(ABC):
    @abstractmethod
    async def lookup(self, product_ids: Iterable[int]) -> list[ProductSnapshot]:
        """Return price and stock for the given products; unknown ids are omitted."""
        ...


class AddressRepository(ABC):
    """Remote address book keyed by ``(id, user_id)``.

    Every mutation must only touch rows owned by ``user_id``.
    """

    @abstractmethod
    async def list_addresses(self, user_id: str) -> list[ShippingAddress]: ...

    @abstractmethod
    async def create(self, user_id: str, fields: dict) -> ShippingAddress:
        """Insert an address. When it is flagged default, siblings are demoted."""
        ...

    @abstractmethod
    async def update(self, address_id: str, user_id: str, patch: dict) -> ShippingAddress: ...

    @abstractmethod
    async def delete(self, address_id: str, user_id: str) -> None: ...

    @abstractmethod
    async def set_default(self, address_id: str, user_id: str) -> list[ShippingAddress]:
        """Atomically demote every other address of the user and promote this one."""
        ...


class PaymentGateway(ABC):
    @abstractmethod
    async def initiate(
        self,
        request: PaymentRequest,
        on_success: SuccessCallback,
        on_cancel: CancelCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Open a payment flow.

        Returns as soon as the flow is opened. Exactly one of the callbacks
        fires later, possibly never if the customer walks away.
        """
        ...


class OrderStore(ABC):
    @abstractmethod
    async def insert_order(self, record: dict) -> str:
        """Insert an order row and return the identifier assigned by the store."""
        ...

    @abstractmethod
    async def insert_order_lines(self, order_id: str, lines: list[dict]) -> None: ...
