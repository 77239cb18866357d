"""Signed money representation.

Amounts are always non-negative integers in the currency's base unit (cents for
USD, wei for ETH, satoshi for BTC). Direction lives only in ``sign``. Arithmetic
goes through ``signed_amount`` and the sign is re-derived once with
``MoneyWithSign.from_signed``.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from app.constants import CRYPTO_DECIMALS, THREE_DECIMAL_CURRENCIES, ZERO_DECIMAL_CURRENCIES


class MoneySign(StrEnum):
    """Direction of a monetary amount."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


def currency_decimals(currency: str) -> int:
    """Number of decimal places between a currency's display unit and base unit."""
    code = currency.upper()
    if code in CRYPTO_DECIMALS:
        return CRYPTO_DECIMALS[code]
    if code in ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


class Money(BaseModel):
    """Unsigned amount in base units plus ISO/crypto currency code."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., ge=0, description="Amount in smallest currency unit")
    currency: str = Field(..., min_length=3, max_length=10)


class MoneyWithSign(BaseModel):
    """Money plus an explicit positive/negative tag."""

    model_config = ConfigDict(frozen=True)

    money: Money
    sign: MoneySign

    @property
    def signed_amount(self) -> int:
        """Amount as a signed integer for arithmetic and comparisons."""
        if self.sign == MoneySign.NEGATIVE:
            return -self.money.amount
        return self.money.amount

    @classmethod
    def from_signed(cls, currency: str, amount: int) -> "MoneyWithSign":
        """Build from a signed base-unit integer. Zero is POSITIVE."""
        return cls(
            money=Money(amount=abs(amount), currency=currency),
            sign=MoneySign.POSITIVE if amount >= 0 else MoneySign.NEGATIVE,
        )

    @classmethod
    def from_decimal(
        cls, currency: str, value: Decimal | str, sign: MoneySign | None = None
    ) -> "MoneyWithSign":
        """Build from a human-readable amount (e.g. ``"1.5"`` ETH, ``199.99`` USD).

        The value is scaled to base units with exact decimal arithmetic. When
        ``sign`` is omitted it is taken from the value itself.
        """
        value = Decimal(str(value))
        scaled = (abs(value) * (Decimal(10) ** currency_decimals(currency))).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        if sign is None:
            sign = MoneySign.NEGATIVE if value < 0 else MoneySign.POSITIVE
        return cls(money=Money(amount=int(scaled), currency=currency), sign=sign)

    def to_decimal(self) -> Decimal:
        """Signed amount in display units. For presentation only, never stored."""
        return Decimal(self.signed_amount).scaleb(-currency_decimals(self.money.currency))


def add_signed(first: MoneyWithSign, second: MoneyWithSign) -> MoneyWithSign:
    """Sign-aware sum of two balances, returned in the first balance's currency."""
    return MoneyWithSign.from_signed(
        first.money.currency, first.signed_amount + second.signed_amount
    )
