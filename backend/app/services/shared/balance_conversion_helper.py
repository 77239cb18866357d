"""Converts balance-bearing records into the user's display currency."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.constants import COMBINED_BALANCE_ACCOUNT_TYPES
from app.schemas.balance_snapshot import ConvertedBalance, ConvertibleBalance
from app.schemas.money import Money, MoneyWithSign, add_signed
from app.services.currency_conversion_service import (
    ConversionInput,
    ConversionResult,
    CurrencyConversionService,
)
from app.services.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=ConvertibleBalance)

# Group key for items without a currency date (latest rates)
LATEST_RATES_KEY = ""


@dataclass
class _DateGroup:
    """Items sharing one rate date, by position in the input list."""

    rate_date: date | None
    indices: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class _GroupConversion:
    indices: list[int]
    current: list[ConversionResult]
    available: list[ConversionResult]
    effective: list[ConversionResult]


def compute_effective_balance(item: ConvertibleBalance) -> MoneyWithSign:
    """Current plus available for investment-type accounts, current otherwise."""
    if item.account_type in COMBINED_BALANCE_ACCOUNT_TYPES:
        return add_signed(item.current_balance, item.available_balance)
    return item.current_balance


def build_converted_balance(
    original: MoneyWithSign, result: ConversionResult, target_currency: str
) -> ConvertedBalance | None:
    """Converted view of one balance, or None when no real rate was used.

    The converted amount is rounded to the nearest base unit, halves away
    from zero (ROUND_HALF_UP). The sign is carried over from the original.
    """
    if result.used_fallback or result.rate is None or result.rate_date is None:
        return None

    amount = int(Decimal(result.amount).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return ConvertedBalance(
        balance=MoneyWithSign(
            money=Money(amount=amount, currency=target_currency), sign=original.sign
        ),
        rate=float(result.rate),
        rate_date=result.rate_date,
    )


class BalanceConversionHelper:
    """Adds converted and effective balances to a list of balance records.

    Items are grouped by ``currency_date`` so each distinct day costs three
    batched conversions (current, available, effective) instead of one call
    per item. Groups and the three batches inside each group run concurrently;
    the conversion service shares one rate lookup between batches asking for
    the same currency and day, so each (currency, day) is resolved once.

    Usage:
        helper = BalanceConversionHelper(db, conversion_service)
        snapshots = await helper.add_converted_balances(snapshots, user.id)
    """

    def __init__(self, db: AsyncSession, conversion_service: CurrencyConversionService):
        self._db = db
        self.conversion_service = conversion_service

    async def target_currency_for(self, user_id: str) -> str:
        """User's preferred currency, ``settings.default_currency`` if unset or user missing."""
        user = await UserRepository(self._db).find_by_id(user_id)
        if user is None or not user.currency:
            return settings.default_currency
        return user.currency.upper()

    async def add_converted_balances(
        self, items: Sequence[ItemT], user_id: str
    ) -> list[ItemT]:
        """Return copies of ``items`` (same order) with the converted fields set."""
        if not items:
            return []

        target_currency = await self.target_currency_for(user_id)
        effective = [compute_effective_balance(item) for item in items]

        groups: dict[str, _DateGroup] = {}
        for index, item in enumerate(items):
            key = item.currency_date.isoformat() if item.currency_date else LATEST_RATES_KEY
            if key not in groups:
                groups[key] = _DateGroup(rate_date=item.currency_date)
            groups[key].indices.append(index)

        conversions = await asyncio.gather(
            *(
                self._convert_group(groups[key], items, effective, target_currency)
                for key in sorted(groups)
            )
        )

        updates: list[dict | None] = [None] * len(items)
        for conversion in conversions:
            for position, index in enumerate(conversion.indices):
                item = items[index]
                updates[index] = {
                    "converted_current_balance": build_converted_balance(
                        item.current_balance, conversion.current[position], target_currency
                    ),
                    "converted_available_balance": build_converted_balance(
                        item.available_balance, conversion.available[position], target_currency
                    ),
                    "effective_balance": effective[index],
                    "converted_effective_balance": build_converted_balance(
                        effective[index], conversion.effective[position], target_currency
                    ),
                }

        return [item.model_copy(update=update) for item, update in zip(items, updates)]

    async def _convert_group(
        self,
        group: _DateGroup,
        items: Sequence[ConvertibleBalance],
        effective: list[MoneyWithSign],
        target_currency: str,
    ) -> _GroupConversion:
        current_batch = [_as_input(items[i].current_balance) for i in group.indices]
        available_batch = [_as_input(items[i].available_balance) for i in group.indices]
        effective_batch = [_as_input(effective[i]) for i in group.indices]

        current, available, effective_results = await asyncio.gather(
            self.conversion_service.convert_many(current_batch, target_currency, group.rate_date),
            self.conversion_service.convert_many(
                available_batch, target_currency, group.rate_date
            ),
            self.conversion_service.convert_many(
                effective_batch, target_currency, group.rate_date
            ),
        )
        return _GroupConversion(
            indices=group.indices,
            current=current,
            available=available,
            effective=effective_results,
        )


def _as_input(balance: MoneyWithSign) -> ConversionInput:
    return ConversionInput(amount=balance.money.amount, currency=balance.money.currency)
