"""Wiring of the recurring jobs to their services."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.events import EventBus
from app.scheduling import RecurringTask, TaskRegistry
from app.services.account_sync_service import AccountSyncService
from app.services.balance_snapshot_scheduled import BalanceSnapshotScheduledService
from app.services.crypto_balance_service import CryptoBalanceService

FORWARD_FILL_TASK = "forward_fill_balance_snapshots"
SYNC_ALL_ACCOUNTS_TASK = "sync_all_accounts"


def build_task_registry(
    session_factory: async_sessionmaker[AsyncSession],
    crypto_balance_service: CryptoBalanceService | None = None,
    bus: EventBus | None = None,
) -> TaskRegistry:
    """Create the registry with every scheduled job of the application."""
    forward_fill = BalanceSnapshotScheduledService(session_factory)
    account_sync = AccountSyncService(session_factory, crypto_balance_service, bus)

    registry = TaskRegistry()
    registry.register(
        RecurringTask(
            name=FORWARD_FILL_TASK,
            cron=settings.forward_fill_cron,
            timezone="UTC",
            callback=forward_fill.handle_forward_fill_snapshots,
        )
    )
    registry.register(
        RecurringTask(
            name=SYNC_ALL_ACCOUNTS_TASK,
            cron=settings.account_sync_cron,
            timezone=settings.account_sync_timezone,
            callback=account_sync.handle_sync_all_accounts,
        )
    )
    return registry
