from datetime import date

import pytest
from protean.integrations.pytest import DomainFixture
from storefront.addresses.controller import AddressSelectionController
from storefront.cart.store import CartStore
from storefront.checkout.orchestrator import CheckoutOrchestrator
from storefront.config import CheckoutSettings
from storefront.gateway.fake_adapter import (
    FakeInventoryGateway,
    FakePaymentGateway,
    InMemoryAddressRepository,
    InMemoryOrderStore,
)
from storefront.gateway.port import ProductSnapshot
from storefront.gateway.storage import MemoryKeyValueStore
from storefront.shared.session import Customer, UserSession

TODAY = date(2026, 10, 19)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def sneakers():
    """Product 7: 10.00 with 20% off, 5 in stock."""
    return ProductSnapshot(id=7, price=10.0, inventory_count=5, discount_percentage=20.0, name="Canvas Sneakers")


@pytest.fixture()
def backpack():
    return ProductSnapshot(id=12, price=45.5, inventory_count=2, name="Trail Backpack")


@pytest.fixture()
def inventory(sneakers, backpack):
    return FakeInventoryGateway([sneakers, backpack])


@pytest.fixture()
def storage():
    return MemoryKeyValueStore()


@pytest.fixture()
def cart_store(inventory, storage):
    return CartStore(inventory, storage)


@pytest.fixture()
def customer():
    return Customer(user_id="user-001", email="ama@example.com", first_name="Ama", last_name="Mensah")


@pytest.fixture()
def session(customer):
    return UserSession(customer)


@pytest.fixture()
def address_repo():
    return InMemoryAddressRepository()


@pytest.fixture()
def addresses(address_repo, session):
    return AddressSelectionController(address_repo, session)


@pytest.fixture()
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture()
def order_store():
    return InMemoryOrderStore()


@pytest.fixture()
def settings():
    return CheckoutSettings()


@pytest.fixture()
def checkout(cart_store, addresses, inventory, payment_gateway, order_store, session, settings):
    return CheckoutOrchestrator(
        cart_store,
        addresses,
        inventory,
        payment_gateway,
        order_store,
        session,
        settings=settings,
        today=lambda: TODAY,
    )


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------
@pytest.fixture()
def address_data():
    def _make(**overrides):
        data = {
            "first_name": "Ama",
            "last_name": "Mensah",
            "address_line1": "12 Independence Ave",
            "city": "Accra",
            "state": "Greater Accra",
            "postal_code": "GA-184",
            "country": "GH",
            "phone": "+233 20 000 0000",
        }
        data.update(overrides)
        return data

    return _make
