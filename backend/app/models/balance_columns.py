"""Embedded current/available balance columns shared by accounts and snapshots."""

from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.schemas.money import Money, MoneySign, MoneyWithSign

# 78 digits holds any uint256 wei amount
BaseUnitAmount = Numeric(78, 0)


class BalanceColumnsMixin:
    """Adds ``{current,available}_balance_{amount,currency,sign}`` columns.

    ``current_balance`` / ``available_balance`` read and write them as
    ``MoneyWithSign``.
    """

    current_balance_amount: Mapped[Decimal] = mapped_column(BaseUnitAmount)
    current_balance_currency: Mapped[str] = mapped_column(String(10))
    current_balance_sign: Mapped[str] = mapped_column(String(8))
    available_balance_amount: Mapped[Decimal] = mapped_column(BaseUnitAmount)
    available_balance_currency: Mapped[str] = mapped_column(String(10))
    available_balance_sign: Mapped[str] = mapped_column(String(8))

    @property
    def current_balance(self) -> MoneyWithSign:
        return _to_money(
            self.current_balance_amount, self.current_balance_currency, self.current_balance_sign
        )

    @current_balance.setter
    def current_balance(self, value: MoneyWithSign) -> None:
        self.current_balance_amount = Decimal(value.money.amount)
        self.current_balance_currency = value.money.currency
        self.current_balance_sign = value.sign.value

    @property
    def available_balance(self) -> MoneyWithSign:
        return _to_money(
            self.available_balance_amount,
            self.available_balance_currency,
            self.available_balance_sign,
        )

    @available_balance.setter
    def available_balance(self, value: MoneyWithSign) -> None:
        self.available_balance_amount = Decimal(value.money.amount)
        self.available_balance_currency = value.money.currency
        self.available_balance_sign = value.sign.value


def balance_column_values(prefix: str, value: MoneyWithSign) -> dict:
    """Column/value mapping for one embedded balance, for Core insert/update statements."""
    return {
        f"{prefix}_amount": Decimal(value.money.amount),
        f"{prefix}_currency": value.money.currency,
        f"{prefix}_sign": value.sign.value,
    }


def _to_money(amount: Decimal | int | str, currency: str, sign: str) -> MoneyWithSign:
    # Some drivers return NUMERIC as str or float
    return MoneyWithSign(
        money=Money(amount=int(Decimal(str(amount))), currency=currency),
        sign=MoneySign(sign),
    )
