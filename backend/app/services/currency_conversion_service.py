"""Currency conversion on top of the exchange rate cache."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from app.schemas.exchange_rate import RateQuote
from app.schemas.money import currency_decimals
from app.services.market_data.exchange_rate_service import ExchangeRateService
from app.services.shared.timezone_utils import utc_today

logger = logging.getLogger(__name__)


class ConversionInput(NamedTuple):
    """Amount in the source currency's base units."""

    amount: int
    currency: str


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of converting one amount.

    On fallback ``amount`` is the original, unconverted amount and both
    ``rate`` and ``rate_date`` are None.
    """

    amount: Decimal
    rate: Decimal | None
    rate_date: date | None
    used_fallback: bool


class CurrencyConversionService:
    """Converts base-unit amounts between currencies.

    Amounts are rescaled between base-unit exponents, e.g. 1.5 ETH in wei at
    2000 USD/ETH becomes 300000 (cents). Unconvertible amounts degrade to a
    fallback result instead of raising.
    """

    def __init__(self, exchange_rate_service: ExchangeRateService):
        self.exchange_rate_service = exchange_rate_service
        self._pending_rates: dict[tuple[str, str, date | None], asyncio.Future] = {}

    async def convert(
        self,
        amount: int,
        from_currency: str,
        to_currency: str,
        rate_date: date | None = None,
    ) -> ConversionResult:
        """Convert one amount. See ``convert_many``."""
        results = await self.convert_many(
            [ConversionInput(amount, from_currency)], to_currency, rate_date
        )
        return results[0]

    async def convert_many(
        self,
        items: list[ConversionInput],
        to_currency: str,
        rate_date: date | None = None,
    ) -> list[ConversionResult]:
        """Convert several amounts to one target currency.

        Each distinct source currency is resolved once, concurrently.
        Results keep the order and length of ``items``.
        """
        if not items:
            return []

        to_currency = to_currency.upper()
        currencies = sorted({item.currency.upper() for item in items} - {to_currency})
        quotes = await asyncio.gather(
            *(
                self._shared_rate(currency, to_currency, rate_date)
                for currency in currencies
            )
        )
        quote_by_currency: dict[str, RateQuote | None] = dict(zip(currencies, quotes))

        results = []
        for item in items:
            from_currency = item.currency.upper()
            if from_currency == to_currency:
                results.append(
                    ConversionResult(
                        amount=Decimal(item.amount),
                        rate=Decimal(1),
                        rate_date=rate_date or utc_today(),
                        used_fallback=False,
                    )
                )
                continue

            quote = quote_by_currency[from_currency]
            if quote is None:
                when = f" on {rate_date}" if rate_date else ""
                logger.warning(
                    f"No exchange rate found for {from_currency}->{to_currency}{when}, "
                    f"using original amount"
                )
                results.append(
                    ConversionResult(
                        amount=Decimal(item.amount),
                        rate=None,
                        rate_date=None,
                        used_fallback=True,
                    )
                )
                continue

            results.append(
                ConversionResult(
                    amount=_rescale(item.amount * quote.rate, from_currency, to_currency),
                    rate=quote.rate,
                    rate_date=quote.rate_date,
                    used_fallback=False,
                )
            )
        return results

    async def convert_amount(
        self,
        amount: int,
        from_currency: str,
        to_currency: str,
        rate_date: date | None = None,
    ) -> Decimal:
        """Converted amount only (original amount when no rate is available)."""
        return (await self.convert(amount, from_currency, to_currency, rate_date)).amount

    async def has_rate(
        self, from_currency: str, to_currency: str, rate_date: date | None = None
    ) -> bool:
        if from_currency.upper() == to_currency.upper():
            return True
        quote = await self._shared_rate(from_currency.upper(), to_currency.upper(), rate_date)
        return quote is not None

    async def _shared_rate(
        self, from_currency: str, to_currency: str, rate_date: date | None
    ) -> RateQuote | None:
        """Rate lookup shared by every concurrent caller asking for the same pair and day.

        The current, available and effective batches of one date group ask for
        the same currencies at the same moment; they all await a single lookup.
        """
        key = (from_currency, to_currency, rate_date)
        pending = self._pending_rates.get(key)
        if pending is None:
            pending = asyncio.ensure_future(
                self.exchange_rate_service.get_rate(from_currency, to_currency, rate_date)
            )
            self._pending_rates[key] = pending
            pending.add_done_callback(lambda _: self._pending_rates.pop(key, None))
        return await asyncio.shield(pending)


def _rescale(amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
    """Move a base-unit amount from the source exponent to the target exponent."""
    shift = currency_decimals(to_currency) - currency_decimals(from_currency)
    return amount.scaleb(shift) if shift else amount
