"""CoinGecko API client for cryptocurrency exchange rates."""

import logging
from datetime import UTC, date, datetime
from decimal import Decimal

import httpx

from app.config import settings
from app.constants import Currency
from app.services.market_data.rate_provider import (
    CurrencyRateProvider,
    ExchangeRateProviderError,
)
from app.services.shared.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

# Symbol to CoinGecko ID mapping for supported cryptocurrencies
SYMBOL_TO_ID: dict[str, str] = {
    Currency.BTC: "bitcoin",
    Currency.ETH: "ethereum",
}


class CoinGeckoRateProvider(HTTPClient, CurrencyRateProvider):
    """Crypto rate provider: ETH/BTC quoted in any fiat currency.

    Usage:
        provider = CoinGeckoRateProvider()
        rate = await provider.get_rate("ETH", "USD")
        historical = await provider.get_rate("BTC", "EUR", date(2024, 1, 1))
    """

    provider_name = "coingecko"
    currency_type = "crypto"
    supported_base_currencies = frozenset(SYMBOL_TO_ID)

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize CoinGecko provider.

        Args:
            base_url: API root, defaults to ``settings.coingecko_base_url``
            api_key: Optional demo API key for higher rate limits
            transport: Custom httpx transport (tests)
        """
        headers = {"Accept": "application/json"}
        api_key = api_key if api_key is not None else settings.coingecko_api_key
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        super().__init__(
            base_url=base_url or settings.coingecko_base_url,
            headers=headers,
            transport=transport,
        )

    def _symbol_to_id(self, symbol: str) -> str:
        coin_id = SYMBOL_TO_ID.get(symbol.upper())
        if coin_id is None:
            raise ExchangeRateProviderError(
                "unsupported cryptocurrency", self.provider_name, symbol, "?"
            )
        return coin_id

    async def get_rate(
        self, base_currency: str, target_currency: str, rate_date: date | None = None
    ) -> Decimal:
        coin_id = self._symbol_to_id(base_currency)
        fiat = target_currency.lower()

        try:
            if rate_date is None:
                result = await self.get_json(
                    "/simple/price", params={"ids": coin_id, "vs_currencies": fiat}
                )
                price = (result.get(coin_id) or {}).get(fiat)
            else:
                # CoinGecko expects date in dd-mm-yyyy format
                result = await self.get_json(
                    f"/coins/{coin_id}/history",
                    params={"date": rate_date.strftime("%d-%m-%Y"), "localization": "false"},
                )
                price = ((result.get("market_data") or {}).get("current_price") or {}).get(fiat)
        except HTTPClientError as e:
            raise ExchangeRateProviderError(
                str(e), self.provider_name, base_currency, target_currency, rate_date,
                status_code=e.status_code,
            ) from e

        if price is None:
            raise ExchangeRateProviderError(
                "no rate in response", self.provider_name, base_currency, target_currency,
                rate_date,
            )
        return Decimal(str(price))

    async def get_historical_rates(
        self,
        base_currency: str,
        target_currencies: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[date, dict[str, Decimal]]:
        """Daily rates from ``/market_chart/range``, keeping the last price of each UTC day.

        One request per target currency; a failing target is logged and left out.
        """
        coin_id = self._symbol_to_id(base_currency)
        start_ts = int(
            datetime.combine(start_date, datetime.min.time()).replace(tzinfo=UTC).timestamp()
        )
        end_ts = int(
            datetime.combine(end_date, datetime.max.time()).replace(tzinfo=UTC).timestamp()
        )

        series: dict[date, dict[str, Decimal]] = {}
        for target_currency in target_currencies:
            params = {"vs_currency": target_currency.lower(), "from": start_ts, "to": end_ts}
            try:
                result = await self.get_json(f"/coins/{coin_id}/market_chart/range", params)
            except HTTPClientError as e:
                logger.error(
                    f"Failed to fetch {base_currency}/{target_currency} history: {e}"
                )
                continue

            daily: dict[date, Decimal] = {}
            for timestamp_ms, price in result.get("prices", []):
                if price is None:
                    continue
                day = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).date()
                daily[day] = Decimal(str(price))

            for day, price in daily.items():
                series.setdefault(day, {})[target_currency] = price
            logger.info(
                f"Fetched {len(daily)} days of {base_currency}/{target_currency} prices"
            )

        return series
