"""External exchange rate providers and the rate cache.

This module centralizes all exchange rate fetching:
- ExchangeRateService: single entry point (cache, provider routing, fallback)
- FrankfurterRateProvider: fiat rates from frankfurter.dev
- CoinGeckoRateProvider: ETH/BTC rates from CoinGecko

Usage:
    from app.services.market_data import ExchangeRateService

    service = ExchangeRateService(SessionLocal)
    quote = await service.get_rate("EUR", "USD")
"""

from .coingecko_client import CoinGeckoRateProvider
from .exchange_rate_service import ExchangeRateService
from .frankfurter_client import FrankfurterRateProvider
from .rate_provider import CurrencyRateProvider, ExchangeRateProviderError

__all__ = [
    "CoinGeckoRateProvider",
    "CurrencyRateProvider",
    "ExchangeRateProviderError",
    "ExchangeRateService",
    "FrankfurterRateProvider",
]
