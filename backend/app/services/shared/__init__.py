"""Shared utilities and base classes for services layer.

This module provides foundational components used across multiple services:
- HTTPClient: Base class for all external API clients with retry logic
- HTTPClientError: Exception for HTTP client failures
- Currency pair normalisation and user-local date helpers
- balance_conversion_helper: converts balance-bearing records for display
  (imported from its module, it depends on the services layer)
"""

from .currency_pair import NormalizedPair, is_crypto_currency, normalize_currency_pair
from .http_client import HTTPClient, HTTPClientError
from .timezone_utils import local_today, local_yesterday, resolve_timezone, utc_today

__all__ = [
    "HTTPClient",
    "HTTPClientError",
    "NormalizedPair",
    "is_crypto_currency",
    "local_today",
    "local_yesterday",
    "normalize_currency_pair",
    "resolve_timezone",
    "utc_today",
]
