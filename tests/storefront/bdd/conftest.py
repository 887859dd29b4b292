"""Shared BDD fixtures and step definitions for the storefront."""

import asyncio

import pytest
from pytest_bdd import given, parsers, then
from storefront.gateway.port import ProductSnapshot


@pytest.fixture()
def outcome():
    """Container for the last operation result (used by When/Then steps)."""
    return {"result": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("product {product_id:d} costs {price:f} with {discount:d}% off and {stock:d} in stock"),
    target_fixture="product",
)
def product_in_stock(inventory, product_id, price, discount, stock):
    product = ProductSnapshot(
        id=product_id,
        price=price,
        inventory_count=stock,
        discount_percentage=float(discount),
        name=f"Product {product_id}",
    )
    inventory.stock(product)
    return product


@given(parsers.cfparse("the cart holds {quantity:d} of product {product_id:d}"))
def cart_holds(cart_store, inventory, quantity, product_id):
    result = asyncio.run(cart_store.add_item(inventory.products[product_id], quantity))
    assert result.success


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart holds {quantity:d} of product {product_id:d}"))
def cart_holds_quantity(cart_store, quantity, product_id):
    assert cart_store.cart.quantity_of(product_id) == quantity
    assert len(cart_store.lines) == 1


@then("the cart is empty")
def cart_is_empty(cart_store):
    assert cart_store.is_empty
