"""Small builders shared by the tests."""

from app.schemas.money import MoneyWithSign


def money(currency: str, amount: int) -> MoneyWithSign:
    """Signed base-unit amount, e.g. ``money("USD", -2500)`` for -$25.00."""
    return MoneyWithSign.from_signed(currency, amount)
