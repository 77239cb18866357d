"""Pydantic schemas for BalanceSnapshot model and converted balance views."""

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.money import MoneyWithSign


class BalanceSnapshotType(StrEnum):
    """How a snapshot came to exist."""

    SYNC = "sync"
    USER_UPDATE = "user_update"
    FORWARD_FILL = "forward_fill"


class ConvertedBalance(BaseModel):
    """A balance expressed in the user's display currency."""

    balance: MoneyWithSign
    rate: float = Field(..., description="1 unit of source currency in target currency")
    rate_date: date = Field(..., description="Date of the rate actually used")


class ConvertibleBalance(BaseModel):
    """Anything carrying current/available balances that can be shown converted.

    ``currency_date`` selects historical rates (None means latest), and
    ``account_type`` decides how the effective balance is derived. The
    converted and effective fields are filled in by BalanceConversionHelper.
    """

    current_balance: MoneyWithSign
    available_balance: MoneyWithSign
    currency_date: date | None = None
    account_type: str | None = None

    converted_current_balance: ConvertedBalance | None = None
    converted_available_balance: ConvertedBalance | None = None
    effective_balance: MoneyWithSign | None = None
    converted_effective_balance: ConvertedBalance | None = None


class BalanceSnapshotBase(BaseModel):
    """Base BalanceSnapshot schema with common fields."""

    account_id: str
    current_balance: MoneyWithSign
    available_balance: MoneyWithSign


class BalanceSnapshotUpsert(BalanceSnapshotBase):
    """Schema for creating or replacing the snapshot of an account on a day.

    ``snapshot_date`` defaults to the current UTC date; callers should pass the
    date in the user's timezone.
    """

    snapshot_date: date | None = None
    snapshot_type: BalanceSnapshotType = BalanceSnapshotType.USER_UPDATE


class BalanceSnapshotUpdate(BaseModel):
    """Schema for updating an existing BalanceSnapshot."""

    current_balance: MoneyWithSign | None = None
    available_balance: MoneyWithSign | None = None
    snapshot_type: BalanceSnapshotType | None = None


class BalanceSnapshot(BalanceSnapshotBase):
    """Schema for BalanceSnapshot responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    snapshot_date: date
    snapshot_type: BalanceSnapshotType
    created_at: datetime
    updated_at: datetime


class BalanceSnapshotWithConversion(BalanceSnapshot, ConvertibleBalance):
    """Snapshot plus balances converted to the user's currency."""


class ForwardFillResult(BaseModel):
    """Outcome counts of one forward-fill sweep."""

    created: int = 0
    skipped: int = 0
