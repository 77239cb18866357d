"""SQLAlchemy ORM models."""

from app.models.account import Account
from app.models.balance_snapshot import BalanceSnapshot
from app.models.exchange_rate import ExchangeRate
from app.models.user import User

__all__ = [
    "Account",
    "BalanceSnapshot",
    "ExchangeRate",
    "User",
]
