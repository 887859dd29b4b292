"""BDD tests for the address book."""

import asyncio

from pytest_bdd import given, parsers, scenarios, then, when
from storefront.addresses.controller import FetchState

scenarios("features/address_book.feature")


def _by_city(addresses, city):
    return next(address for address in addresses.addresses if address.city == city)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the shopper has an address in "{city}"'))
def has_address(addresses, address_data, city):
    assert asyncio.run(addresses.add_address(address_data(city=city))).success


@given("the address service is unavailable")
def address_service_down(address_repo):
    address_repo.configure(should_succeed=False, failure_reason="Unauthorized")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the shopper adds an address in "{city}" that is not marked default'))
def add_non_default(addresses, address_data, city):
    assert asyncio.run(addresses.add_address(address_data(city=city, is_default=False))).success


@when(parsers.cfparse('the shopper makes the address in "{city}" the default'))
def make_default(addresses, city):
    assert asyncio.run(addresses.set_default_address(_by_city(addresses, city).id)).success


@when(parsers.cfparse("the addresses are loaded {times:d} times"))
def load_addresses(addresses, times):
    for _ in range(times):
        asyncio.run(addresses.fetch_addresses())


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the address in "{city}" is the default'))
def city_is_default(addresses, city):
    assert _by_city(addresses, city).is_default


@then("exactly one address is the default")
def one_default(addresses):
    assert [address.is_default for address in addresses.addresses].count(True) == 1


@then(parsers.cfparse("the address service was called {count:d} times"))
def service_calls(address_repo, count):
    assert len(address_repo.calls_to("list_addresses")) == count


@then("address loading is in the error state")
def loading_error(addresses):
    assert addresses.state is FetchState.ERROR
