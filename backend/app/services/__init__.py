"""Services layer - business logic and external integrations.

This module is organized into domain-based subpackages:
- market_data/: Exchange rate providers and the rate cache
- repositories/: Data access layer
- shared/: Shared utilities (HTTP client, currency pairs, dates, balance conversion)

Top-level modules hold the balance snapshot engine, currency conversion,
crypto balance reading and account sync.

Common imports for convenience:
    from app.services import NotFoundError, DuplicateError
"""

# Re-export commonly used components for convenience
from app.services.repositories import (
    DuplicateError,
    NotFoundError,
    RepositoryError,
)

__all__ = [
    # Repositories
    "DuplicateError",
    "NotFoundError",
    "RepositoryError",
]
