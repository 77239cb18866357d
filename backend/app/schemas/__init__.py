"""Pydantic schemas for API validation."""

from app.schemas.account import Account, AccountChangedEvent, CryptoWalletLink
from app.schemas.balance_snapshot import (
    BalanceSnapshot,
    BalanceSnapshotType,
    BalanceSnapshotUpdate,
    BalanceSnapshotUpsert,
    BalanceSnapshotWithConversion,
    ConvertedBalance,
    ConvertibleBalance,
    ForwardFillResult,
)
from app.schemas.common import ErrorDetail, ErrorResponse
from app.schemas.exchange_rate import (
    CurrencyPair,
    DailyExchangeRates,
    ExchangeRate,
    PairRate,
    RateQuote,
    RateSource,
)
from app.schemas.money import Money, MoneySign, MoneyWithSign

__all__ = [
    "Account",
    "AccountChangedEvent",
    "BalanceSnapshot",
    "BalanceSnapshotType",
    "BalanceSnapshotUpdate",
    "BalanceSnapshotUpsert",
    "BalanceSnapshotWithConversion",
    "ConvertedBalance",
    "ConvertibleBalance",
    "CryptoWalletLink",
    "CurrencyPair",
    "DailyExchangeRates",
    "ErrorDetail",
    "ErrorResponse",
    "ExchangeRate",
    "ForwardFillResult",
    "Money",
    "MoneySign",
    "MoneyWithSign",
    "PairRate",
    "RateQuote",
    "RateSource",
]
