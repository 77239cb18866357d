"""Service dependencies shared by the routers.

Provider clients hold an httpx connection pool, so the services wrapping them
are built once per process.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import SessionLocal, get_db
from app.events import event_bus
from app.jobs import build_task_registry
from app.scheduling import TaskRegistry
from app.services.account_sync_service import AccountSyncService
from app.services.balance_snapshot_service import BalanceSnapshotService
from app.services.currency_conversion_service import CurrencyConversionService
from app.services.market_data import ExchangeRateService


@lru_cache
def get_exchange_rate_service() -> ExchangeRateService:
    return ExchangeRateService(SessionLocal)


def get_conversion_service(
    exchange_rate_service: ExchangeRateService = Depends(get_exchange_rate_service),
) -> CurrencyConversionService:
    return CurrencyConversionService(exchange_rate_service)


def get_balance_snapshot_service(
    db: AsyncSession = Depends(get_db),
    conversion_service: CurrencyConversionService = Depends(get_conversion_service),
) -> BalanceSnapshotService:
    return BalanceSnapshotService(db, conversion_service)


@lru_cache
def get_account_sync_service() -> AccountSyncService:
    return AccountSyncService(SessionLocal, bus=event_bus)


@lru_cache
def get_task_registry() -> TaskRegistry:
    return build_task_registry(SessionLocal, bus=event_bus)
