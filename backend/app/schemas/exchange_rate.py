"""Pydantic schemas for ExchangeRate model."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ExchangeRate(BaseModel):
    """Schema for stored ExchangeRate responses (normalised orientation)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    base_currency: str = Field(..., min_length=3, max_length=10)
    target_currency: str = Field(..., min_length=3, max_length=10)
    rate: Decimal = Field(..., gt=0, description="1 base_currency in target_currency")
    rate_date: date
    created_at: datetime


class RateQuote(BaseModel):
    """A resolved rate in the requested orientation."""

    base_currency: str
    target_currency: str
    rate: Decimal
    rate_date: date


class CurrencyPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_currency: str
    target_currency: str

    @classmethod
    def parse(cls, value: str) -> "CurrencyPair":
        """Parse ``"EUR:USD"``."""
        base, _, target = value.partition(":")
        if not base or not target:
            raise ValueError(f"Invalid currency pair: {value!r}")
        return cls(base_currency=base.upper(), target_currency=target.upper())


class RateSource(StrEnum):
    """Whether a daily rate was stored for that day or filled from a neighbour."""

    DB = "DB"
    FILLED = "FILLED"


class PairRate(BaseModel):
    base_currency: str
    target_currency: str
    rate: Decimal
    source: RateSource


class DailyExchangeRates(BaseModel):
    """Rates of several pairs on one day."""

    date: date
    rates: list[PairRate]
