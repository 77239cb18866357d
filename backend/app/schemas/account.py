"""Pydantic schemas for Account model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.constants import CryptoNetwork
from app.schemas.money import MoneyWithSign


class Account(BaseModel):
    """Schema for Account responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str | None = None
    account_type: str
    provider_name: str | None = None
    wallet_network: str | None = None
    wallet_address: str | None = None
    current_balance: MoneyWithSign
    available_balance: MoneyWithSign
    created_at: datetime
    updated_at: datetime


class AccountChangedEvent(BaseModel):
    """Payload of ``linked-account.*`` events: the account at time of change."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    account_type: str
    current_balance: MoneyWithSign
    available_balance: MoneyWithSign


class CryptoWalletLink(BaseModel):
    """Request body for linking a crypto wallet."""

    network: str = Field(
        ..., pattern=f"^({CryptoNetwork.ETHEREUM}|{CryptoNetwork.BITCOIN})$"
    )
    address: str = Field(..., min_length=20, max_length=100)
    name: str | None = Field(None, max_length=100)
