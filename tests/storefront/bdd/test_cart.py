"""BDD tests for the shopping cart."""

import asyncio

from pytest_bdd import parsers, scenarios, then, when
from storefront.cart.store import CartStore

scenarios("features/cart.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse("the shopper adds {quantity:d} of product {product_id:d}"))
def add_product(cart_store, inventory, outcome, quantity, product_id):
    outcome["result"] = asyncio.run(cart_store.add_item(inventory.products[product_id], quantity))


@when(parsers.cfparse("the shopper sets product {product_id:d} to quantity {quantity:d}"))
def set_quantity(cart_store, outcome, product_id, quantity):
    outcome["result"] = asyncio.run(cart_store.update_quantity(product_id, quantity))


@when(parsers.cfparse("the shopper removes product {product_id:d}"))
def remove_product(cart_store, outcome, product_id):
    outcome["result"] = cart_store.remove_item(product_id)
    assert outcome["result"].success


@when("the page is reloaded", target_fixture="cart_store")
def reload_page(inventory, storage):
    store = CartStore(inventory, storage)
    store.rehydrate()
    return store


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart total is {total:f}"))
def cart_total(cart_store, total):
    assert cart_store.total == total


@then(parsers.cfparse("the cart item count is {count:d}"))
def cart_item_count(cart_store, count):
    assert cart_store.item_count == count


@then(parsers.cfparse('the shopper is told "{message}"'))
def shopper_told(outcome, message):
    assert not outcome["result"].success
    assert outcome["result"].message == message
