"""Frankfurter API client for fiat exchange rates.

https://frankfurter.dev - free, open-source ECB reference rates. No API key.
Weekends and holidays have no rates; dated lookups return the previous
business day's rate.
"""

import logging
from datetime import date
from decimal import Decimal

import httpx

from app.config import settings
from app.services.market_data.rate_provider import (
    CurrencyRateProvider,
    ExchangeRateProviderError,
)
from app.services.shared.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)


class FrankfurterRateProvider(HTTPClient, CurrencyRateProvider):
    """Fiat rate provider backed by Frankfurter.

    Usage:
        provider = FrankfurterRateProvider()
        rate = await provider.get_rate("EUR", "USD", date(2024, 1, 10))
    """

    provider_name = "frankfurter"
    currency_type = "fiat"
    supported_base_currencies = None

    def __init__(
        self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None
    ):
        super().__init__(
            base_url=base_url or settings.frankfurter_base_url,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def get_rate(
        self, base_currency: str, target_currency: str, rate_date: date | None = None
    ) -> Decimal:
        endpoint = f"/{rate_date.isoformat()}" if rate_date else "/latest"
        params = {"base": base_currency, "symbols": target_currency}

        try:
            data = await self.get_json(endpoint, params=params)
        except HTTPClientError as e:
            raise ExchangeRateProviderError(
                str(e), self.provider_name, base_currency, target_currency, rate_date,
                status_code=e.status_code,
            ) from e

        rate = (data.get("rates") or {}).get(target_currency)
        if rate is None:
            raise ExchangeRateProviderError(
                "no rate in response", self.provider_name, base_currency, target_currency,
                rate_date,
            )
        return Decimal(str(rate))

    async def get_latest_rates(
        self, base_currency: str, target_currencies: list[str]
    ) -> dict[str, Decimal]:
        """Latest rates for several targets in one request."""
        if not target_currencies:
            return {}
        params = {"base": base_currency, "symbols": ",".join(target_currencies)}

        try:
            data = await self.get_json("/latest", params=params)
        except HTTPClientError as e:
            raise ExchangeRateProviderError(
                str(e), self.provider_name, base_currency, ",".join(target_currencies),
                status_code=e.status_code,
            ) from e

        rates = {
            currency: Decimal(str(rate)) for currency, rate in (data.get("rates") or {}).items()
        }
        logger.info(f"Fetched {len(rates)} {base_currency} rates for {data.get('date')}")
        return rates

    async def get_historical_rates(
        self,
        base_currency: str,
        target_currencies: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[date, dict[str, Decimal]]:
        if not target_currencies:
            return {}
        endpoint = f"/{start_date.isoformat()}..{end_date.isoformat()}"
        params = {"base": base_currency, "symbols": ",".join(target_currencies)}

        try:
            data = await self.get_json(endpoint, params=params)
        except HTTPClientError as e:
            raise ExchangeRateProviderError(
                str(e), self.provider_name, base_currency, ",".join(target_currencies),
                start_date, status_code=e.status_code,
            ) from e

        series: dict[date, dict[str, Decimal]] = {}
        for day, day_rates in (data.get("rates") or {}).items():
            series[date.fromisoformat(day)] = {
                currency: Decimal(str(rate)) for currency, rate in day_rates.items()
            }

        logger.info(
            f"Fetched {len(series)} days of {base_currency} rates "
            f"({start_date} to {end_date})"
        )
        return series
