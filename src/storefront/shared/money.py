"""Money helpers. Amounts are floats rounded to the cent at every step."""


def round_money(amount: float) -> float:
    return round(amount, 2)


def effective_unit_price(price: float, discount_percentage: float | None = None) -> float:
    """Unit price after applying an active discount percentage."""
    if discount_percentage:
        return round_money(price * (1 - discount_percentage / 100))
    return round_money(price)
