"""Tests for CurrencyConversionService."""

import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.schemas.exchange_rate import RateQuote
from app.services.currency_conversion_service import (
    ConversionInput,
    CurrencyConversionService,
)
from app.services.market_data import ExchangeRateService

RATE_DAY = date(2024, 1, 10)
QUOTES = {
    ("EUR", "USD"): Decimal("1.1"),
    ("ETH", "USD"): Decimal("2000"),
    ("USD", "JPY"): Decimal("150"),
}


async def fake_get_rate(base, target, rate_date=None):
    rate = QUOTES.get((base, target))
    if rate is None:
        return None
    return RateQuote(
        base_currency=base, target_currency=target, rate=rate, rate_date=rate_date or RATE_DAY
    )


@pytest.fixture
def rate_service():
    service = MagicMock(spec=ExchangeRateService)
    service.get_rate = AsyncMock(side_effect=fake_get_rate)
    return service


@pytest.fixture
def service(rate_service):
    return CurrencyConversionService(rate_service)


class TestConvert:
    async def test_fiat_to_fiat(self, service):
        result = await service.convert(10000, "EUR", "USD")

        assert result.amount == Decimal("11000")
        assert result.rate == Decimal("1.1")
        assert result.rate_date == RATE_DAY
        assert not result.used_fallback

    async def test_wei_to_cents(self, service):
        """1.5 ETH at 2000 USD is 300000 cents."""
        result = await service.convert(1_500_000_000_000_000_000, "ETH", "USD")
        assert result.amount == Decimal("300000")

    async def test_cents_to_zero_decimal_currency(self, service):
        """$12.34 at 150 JPY/USD is 1851 yen."""
        result = await service.convert(1234, "USD", "JPY")
        assert result.amount == Decimal("1851")

    async def test_same_currency_is_identity(self, service, rate_service):
        result = await service.convert(500, "usd", "USD", date(2024, 2, 1))

        assert result.amount == Decimal(500)
        assert result.rate == Decimal(1)
        assert result.rate_date == date(2024, 2, 1)
        rate_service.get_rate.assert_not_awaited()

    async def test_missing_rate_falls_back_to_original_amount(self, service):
        result = await service.convert(700, "XYZ", "USD")

        assert result.used_fallback
        assert result.amount == Decimal(700)
        assert result.rate is None
        assert result.rate_date is None

    async def test_passes_rate_date_through(self, service, rate_service):
        await service.convert(100, "EUR", "USD", date(2023, 6, 1))
        rate_service.get_rate.assert_awaited_once_with("EUR", "USD", date(2023, 6, 1))


class TestConvertMany:
    async def test_empty_batch(self, service, rate_service):
        assert await service.convert_many([], "USD") == []
        rate_service.get_rate.assert_not_awaited()

    async def test_each_currency_resolved_once(self, service, rate_service):
        items = [
            ConversionInput(100, "EUR"),
            ConversionInput(200, "EUR"),
            ConversionInput(300, "USD"),
            ConversionInput(400, "XYZ"),
        ]

        results = await service.convert_many(items, "USD")

        assert [r.amount for r in results] == [
            Decimal("110"),
            Decimal("220"),
            Decimal(300),
            Decimal(400),
        ]
        assert [r.used_fallback for r in results] == [False, False, False, True]
        assert rate_service.get_rate.await_count == 2

    async def test_concurrent_batches_share_one_lookup(self, service, rate_service):
        async def slow_get_rate(base, target, rate_date=None):
            await asyncio.sleep(0.05)
            return await fake_get_rate(base, target, rate_date)

        rate_service.get_rate.side_effect = slow_get_rate
        batch = [ConversionInput(100, "EUR"), ConversionInput(250, "EUR")]

        results = await asyncio.gather(
            *(service.convert_many(batch, "USD", RATE_DAY) for _ in range(3))
        )

        rate_service.get_rate.assert_awaited_once_with("EUR", "USD", RATE_DAY)
        assert all(
            [r.amount for r in batch_results] == [Decimal("110"), Decimal("275")]
            for batch_results in results
        )

        # a finished lookup is not cached for later callers
        await service.convert_many(batch, "USD", RATE_DAY)
        assert rate_service.get_rate.await_count == 2


class TestHelpers:
    async def test_convert_amount(self, service):
        assert await service.convert_amount(100, "EUR", "USD") == Decimal("110")
        assert await service.convert_amount(100, "XYZ", "USD") == Decimal(100)

    async def test_has_rate(self, service):
        assert await service.has_rate("EUR", "USD")
        assert await service.has_rate("GBP", "gbp")
        assert not await service.has_rate("XYZ", "USD")
