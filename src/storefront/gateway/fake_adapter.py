"""In-process adapters for the storefront ports.

These simulate the inventory source, the remote address book, the order
store and the payment processor without any network calls. Each can be
configured at runtime to fail, which makes them useful for:
- Development without backend credentials
- Automated tests with predictable outcomes
"""

from datetime import UTC, datetime
from uuid import uuid4

from storefront.addresses.address import ShippingAddress, address_from_row, address_to_row
from storefront.gateway.port import (
    AddressRepository,
    InventoryGateway,
    OrderStore,
    PaymentGateway,
    PaymentRequest,
    ProductSnapshot,
)
from storefront.shared.errors import GatewayError


class _Configurable:
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Service unavailable"
        self.failing_operations: set[str] | None = None
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Service unavailable",
        operations: set[str] | None = None,
    ) -> None:
        """Configure behavior at runtime.

        ``operations`` limits the failure to the named methods; ``None``
        means every method fails.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failing_operations = set(operations) if operations else None

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.should_succeed:
            return
        if self.failing_operations is None or method in self.failing_operations:
            raise GatewayError(self.failure_reason)

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]


class FakeInventoryGateway(_Configurable, InventoryGateway):
    def __init__(self, products: list[ProductSnapshot] | None = None) -> None:
        super().__init__()
        self.products: dict[int, ProductSnapshot] = {p.id: p for p in products or []}

    def stock(self, product: ProductSnapshot) -> None:
        self.products[product.id] = product

    def set_inventory(self, product_id: int, inventory_count: int) -> None:
        current = self.products[product_id]
        self.products[product_id] = ProductSnapshot(
            id=current.id,
            price=current.price,
            inventory_count=inventory_count,
            discount_percentage=current.discount_percentage,
            name=current.name,
        )

    async def lookup(self, product_ids) -> list[ProductSnapshot]:
        ids = list(product_ids)
        self._record("lookup", product_ids=ids)
        return [self.products[pid] for pid in ids if pid in self.products]


class InMemoryAddressRepository(_Configurable, AddressRepository):
    """Address book kept as storage rows (legacy ``address`` column)."""

    def __init__(self) -> None:
        super().__init__()
        self.rows: dict[str, dict] = {}

    def _owned(self, address_id: str, user_id: str) -> dict:
        row = self.rows.get(str(address_id))
        if row is None or row["user_id"] != str(user_id):
            raise GatewayError(f"Address {address_id} not found")
        return row

    def _demote_siblings(self, rows: dict[str, dict], user_id: str, keep_id: str) -> None:
        for row_id, row in rows.items():
            if row["user_id"] == user_id and row_id != keep_id and row.get("is_default"):
                rows[row_id] = {**row, "is_default": False}

    def _user_rows(self, user_id: str) -> list[dict]:
        rows = [row for row in self.rows.values() if row["user_id"] == str(user_id)]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    async def list_addresses(self, user_id: str) -> list[ShippingAddress]:
        self._record("list_addresses", user_id=user_id)
        return [address_from_row(row) for row in self._user_rows(user_id)]

    async def create(self, user_id: str, fields: dict) -> ShippingAddress:
        self._record("create", user_id=user_id, fields=dict(fields))
        now = datetime.now(UTC)
        row = address_to_row(fields)
        row.update(
            id=str(uuid4()),
            user_id=str(user_id),
            is_default=bool(fields.get("is_default", False)),
            created_at=now,
            updated_at=now,
        )
        rows = dict(self.rows)
        if row["is_default"]:
            self._demote_siblings(rows, row["user_id"], row["id"])
        rows[row["id"]] = row
        self.rows = rows
        return address_from_row(row)

    async def update(self, address_id: str, user_id: str, patch: dict) -> ShippingAddress:
        self._record("update", address_id=address_id, user_id=user_id, patch=dict(patch))
        current = self._owned(address_id, user_id)
        row = {**current, **address_to_row(patch), "updated_at": datetime.now(UTC)}
        rows = dict(self.rows)
        if row.get("is_default"):
            self._demote_siblings(rows, row["user_id"], row["id"])
        rows[row["id"]] = row
        self.rows = rows
        return address_from_row(row)

    async def delete(self, address_id: str, user_id: str) -> None:
        self._record("delete", address_id=address_id, user_id=user_id)
        self._owned(address_id, user_id)
        del self.rows[str(address_id)]

    async def set_default(self, address_id: str, user_id: str) -> list[ShippingAddress]:
        self._record("set_default", address_id=address_id, user_id=user_id)
        target = self._owned(address_id, user_id)

        # Build the new state completely before swapping it in
        rows = dict(self.rows)
        self._demote_siblings(rows, target["user_id"], target["id"])
        rows[target["id"]] = {**target, "is_default": True, "updated_at": datetime.now(UTC)}
        self.rows = rows
        return [address_from_row(row) for row in self._user_rows(user_id)]


class InMemoryOrderStore(_Configurable, OrderStore):
    def __init__(self) -> None:
        super().__init__()
        self.orders: dict[str, dict] = {}
        self.lines: dict[str, list[dict]] = {}

    async def insert_order(self, record: dict) -> str:
        self._record("insert_order", record=dict(record))
        order_id = str(uuid4())
        self.orders[order_id] = {**record, "id": order_id}
        return order_id

    async def insert_order_lines(self, order_id: str, lines: list[dict]) -> None:
        self._record("insert_order_lines", order_id=order_id, count=len(lines))
        if order_id not in self.orders:
            raise GatewayError(f"Order {order_id} does not exist")
        self.lines[order_id] = [{**line, "id": str(uuid4()), "order_id": order_id} for line in lines]


class FakePaymentGateway(_Configurable, PaymentGateway):
    """Payment processor whose outcome is driven by the caller.

    ``initiate`` only records the flow; ``succeed``, ``cancel`` or ``fail``
    later fires the matching callback, once.
    """

    def __init__(self) -> None:
        super().__init__()
        self.initiations: list[PaymentRequest] = []
        self._pending: dict[str, tuple] = {}

    async def initiate(self, request, on_success, on_cancel, on_error) -> None:
        self._record("initiate", amount=request.amount, currency=request.currency, reference=request.reference)
        self.initiations.append(request)
        self._pending[request.reference] = (on_success, on_cancel, on_error)

    @property
    def pending_references(self) -> list[str]:
        return list(self._pending)

    def _take(self, reference: str | None) -> tuple:
        if reference is None:
            if not self._pending:
                raise LookupError("No payment flow is open")
            reference = next(reversed(self._pending))
        return self._pending.pop(reference)

    async def succeed(self, reference: str | None = None, gateway_reference: str | None = None) -> None:
        on_success, _, _ = self._take(reference)
        await on_success(gateway_reference or f"fake_ps_{uuid4().hex[:12]}")

    async def cancel(self, reference: str | None = None) -> None:
        _, on_cancel, _ = self._take(reference)
        await on_cancel()

    async def fail(self, reason: str = "Card declined", reference: str | None = None) -> None:
        _, _, on_error = self._take(reference)
        await on_error(reason)
