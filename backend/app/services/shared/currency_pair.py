"""Currency pair helpers shared by the rate cache and providers."""

from typing import NamedTuple

from app.constants import CRYPTO_CURRENCIES, Currency


class NormalizedPair(NamedTuple):
    """Stored orientation of a currency pair."""

    base: str
    target: str
    inverted: bool


def is_crypto_currency(currency: str) -> bool:
    """Check if a currency code is one of the supported cryptocurrencies."""
    return currency.upper() in CRYPTO_CURRENCIES


def normalize_currency_pair(base_currency: str, target_currency: str) -> NormalizedPair:
    """Canonical orientation for storing a pair.

    USD is always the target (X -> USD). Other pairs are ordered
    alphabetically. ``inverted`` tells the caller to use ``1 / rate``.
    """
    base = base_currency.upper()
    target = target_currency.upper()

    if base == Currency.USD:
        return NormalizedPair(target, Currency.USD, True)
    if target == Currency.USD:
        return NormalizedPair(base, Currency.USD, False)

    if base <= target:
        return NormalizedPair(base, target, False)
    return NormalizedPair(target, base, True)
