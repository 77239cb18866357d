"""Common contract for exchange rate providers.

Providers are pure API callers. They never touch the database; caching and
fallback policy live in ExchangeRateService.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Literal

from app.services.shared.http_client import HTTPClientError


class ExchangeRateProviderError(HTTPClientError):
    """A provider could not deliver a rate for a pair/date."""

    def __init__(
        self,
        message: str,
        provider: str,
        base_currency: str,
        target_currency: str,
        rate_date: date | None = None,
        status_code: int | None = None,
    ):
        when = f" on {rate_date}" if rate_date else ""
        super().__init__(
            f"[{provider}] {base_currency}/{target_currency}{when}: {message}",
            status_code=status_code,
        )
        self.provider = provider
        self.base_currency = base_currency
        self.target_currency = target_currency
        self.rate_date = rate_date


class CurrencyRateProvider(ABC):
    """Source of ``1 base = rate target`` quotes."""

    provider_name: str
    currency_type: Literal["fiat", "crypto"]
    # None means every ISO code is accepted as a base
    supported_base_currencies: frozenset[str] | None = None

    def supports_base(self, currency: str) -> bool:
        return (
            self.supported_base_currencies is None
            or currency.upper() in self.supported_base_currencies
        )

    @abstractmethod
    async def get_rate(
        self, base_currency: str, target_currency: str, rate_date: date | None = None
    ) -> Decimal:
        """Latest rate, or the rate on ``rate_date``.

        Raises:
            ExchangeRateProviderError: request failed or the pair is not quoted
        """

    @abstractmethod
    async def get_historical_rates(
        self,
        base_currency: str,
        target_currencies: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[date, dict[str, Decimal]]:
        """Daily rates for a date range (inclusive), keyed by date then target currency."""
