"""Tests for BalanceConversionHelper."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.constants import AccountType
from app.schemas.balance_snapshot import ConvertibleBalance
from app.schemas.money import MoneySign
from app.services.currency_conversion_service import ConversionResult, CurrencyConversionService
from app.services.shared.balance_conversion_helper import (
    BalanceConversionHelper,
    build_converted_balance,
    compute_effective_balance,
)
from tests.helpers import money

LATEST_DAY = date(2024, 1, 31)
RATES = {"EUR": Decimal("1.1"), "GBP": Decimal("1.25")}


async def fake_convert_many(items, to_currency, rate_date=None):
    """EUR/GBP convert at fixed rates, anything else has no rate."""
    results = []
    for item in items:
        if item.currency == to_currency:
            results.append(
                ConversionResult(Decimal(item.amount), Decimal(1), rate_date or LATEST_DAY, False)
            )
        elif item.currency in RATES:
            results.append(
                ConversionResult(
                    Decimal(item.amount) * RATES[item.currency],
                    RATES[item.currency],
                    rate_date or LATEST_DAY,
                    False,
                )
            )
        else:
            results.append(ConversionResult(Decimal(item.amount), None, None, True))
    return results


@pytest.fixture
def conversion_service():
    service = MagicMock(spec=CurrencyConversionService)
    service.convert_many = AsyncMock(side_effect=fake_convert_many)
    return service


@pytest.fixture
def helper(db, conversion_service):
    return BalanceConversionHelper(db, conversion_service)


def balance(currency, current, available=None, currency_date=None, account_type=None):
    return ConvertibleBalance(
        current_balance=money(currency, current),
        available_balance=money(currency, current if available is None else available),
        currency_date=currency_date,
        account_type=account_type,
    )


class TestComputeEffectiveBalance:
    def test_investment_accounts_combine_current_and_available(self):
        item = balance("USD", 5000, 2000, account_type=AccountType.INVESTMENT)
        assert compute_effective_balance(item).signed_amount == 7000

    def test_brokerage_accounts_combine_current_and_available(self):
        item = balance("USD", 5000, -2000, account_type=AccountType.BROKERAGE)
        assert compute_effective_balance(item).signed_amount == 3000

    def test_other_accounts_use_current(self):
        item = balance("USD", 5000, 2000, account_type=AccountType.DEPOSITORY)
        assert compute_effective_balance(item).signed_amount == 5000

    def test_unknown_account_type_uses_current(self):
        assert compute_effective_balance(balance("USD", 5000, 2000)).signed_amount == 5000


class TestBuildConvertedBalance:
    def test_rounds_half_up(self):
        result = ConversionResult(Decimal("1110.5"), Decimal("1.105"), LATEST_DAY, False)
        converted = build_converted_balance(money("EUR", 1005), result, "USD")
        assert converted.balance.money.amount == 1111
        assert converted.balance.money.currency == "USD"

    def test_rounds_down_below_half(self):
        result = ConversionResult(Decimal("1110.49"), Decimal("1.105"), LATEST_DAY, False)
        converted = build_converted_balance(money("EUR", 1005), result, "USD")
        assert converted.balance.money.amount == 1110

    def test_keeps_original_sign(self):
        result = ConversionResult(Decimal("2750"), Decimal("1.1"), LATEST_DAY, False)
        converted = build_converted_balance(money("EUR", -2500), result, "USD")
        assert converted.balance.sign == MoneySign.NEGATIVE
        assert converted.balance.signed_amount == -2750
        assert converted.rate == pytest.approx(1.1)
        assert converted.rate_date == LATEST_DAY

    def test_fallback_gives_none(self):
        result = ConversionResult(Decimal("2500"), None, None, True)
        assert build_converted_balance(money("XYZ", 2500), result, "USD") is None


class TestAddConvertedBalances:
    async def test_empty_list_makes_no_lookups(self, helper, conversion_service):
        assert await helper.add_converted_balances([], "any-user") == []
        conversion_service.convert_many.assert_not_awaited()

    async def test_converts_to_user_currency(self, helper, create_user):
        user = await create_user(currency="usd")
        [item] = await helper.add_converted_balances(
            [balance("EUR", 10000, 8000, currency_date=date(2024, 1, 10))], user.id
        )

        assert item.converted_current_balance.balance.signed_amount == 11000
        assert item.converted_current_balance.balance.money.currency == "USD"
        assert item.converted_available_balance.balance.signed_amount == 8800
        assert item.converted_current_balance.rate_date == date(2024, 1, 10)
        assert item.effective_balance.signed_amount == 10000
        assert item.converted_effective_balance.balance.signed_amount == 11000

    async def test_effective_balance_for_investment_account(self, helper, user):
        [item] = await helper.add_converted_balances(
            [balance("USD", 5000, 2000, account_type=AccountType.INVESTMENT)], user.id
        )

        assert item.effective_balance.signed_amount == 7000
        assert item.converted_effective_balance.balance.signed_amount == 7000

    async def test_three_batched_calls_per_distinct_date(self, helper, conversion_service, user):
        items = [
            balance("EUR", 100, currency_date=date(2024, 1, 1)),
            balance("EUR", 200, currency_date=date(2024, 1, 2)),
            balance("GBP", 300, currency_date=date(2024, 1, 1)),
            balance("EUR", 400, currency_date=date(2024, 1, 3)),
        ]

        await helper.add_converted_balances(items, user.id)

        assert conversion_service.convert_many.await_count == 9
        batch_sizes = sorted(
            len(call.args[0]) for call in conversion_service.convert_many.await_args_list
        )
        assert batch_sizes == [1, 1, 1, 1, 1, 1, 2, 2, 2]

    async def test_items_without_date_use_latest_rates(self, helper, conversion_service, user):
        await helper.add_converted_balances(
            [balance("EUR", 100), balance("GBP", 200)], user.id
        )

        assert conversion_service.convert_many.await_count == 3
        for call in conversion_service.convert_many.await_args_list:
            assert call.args[2] is None

    async def test_preserves_input_order(self, helper, user):
        items = [
            balance("EUR", 100, currency_date=date(2024, 1, 3)),
            balance("GBP", 200),
            balance("EUR", 300, currency_date=date(2024, 1, 1)),
            balance("USD", 400, currency_date=date(2024, 1, 3)),
        ]

        converted = await helper.add_converted_balances(items, user.id)

        assert [item.current_balance.signed_amount for item in converted] == [100, 200, 300, 400]
        assert [item.converted_current_balance.balance.signed_amount for item in converted] == [
            110,
            250,
            330,
            400,
        ]

    async def test_does_not_mutate_inputs(self, helper, user):
        items = [balance("EUR", 100, currency_date=date(2024, 1, 3))]
        await helper.add_converted_balances(items, user.id)
        assert items[0].converted_current_balance is None

    async def test_missing_rate_leaves_converted_fields_empty(self, helper, user):
        [item] = await helper.add_converted_balances([balance("XYZ", 100)], user.id)

        assert item.converted_current_balance is None
        assert item.converted_available_balance is None
        assert item.converted_effective_balance is None
        assert item.effective_balance.signed_amount == 100

    async def test_default_currency_when_user_missing(self, helper, conversion_service):
        await helper.add_converted_balances([balance("EUR", 100)], "no-such-user")
        assert conversion_service.convert_many.await_args_list[0].args[1] == "USD"
