"""Scheduled forward-fill of missing balance snapshots.

Every account should have a snapshot for "yesterday" in its owner's
timezone. When a day has none, the most recent earlier snapshot is copied
forward as FORWARD_FILL. Accounts without any earlier snapshot are skipped.
"""

import logging
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.schemas.balance_snapshot import (
    BalanceSnapshotType,
    BalanceSnapshotUpsert,
    ForwardFillResult,
)
from app.services.balance_snapshot_service import BalanceSnapshotService
from app.services.repositories import AccountRepository, UserRepository
from app.services.shared.timezone_utils import local_yesterday

logger = logging.getLogger(__name__)


class BalanceSnapshotScheduledService:
    """Forward-fill sweep over every account in the system.

    Accounts are processed one at a time, each in its own session. Re-running
    the sweep (or overlapping runs) is harmless because writes are upserts
    keyed on the day.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def handle_forward_fill_snapshots(
        self, now: datetime | None = None
    ) -> ForwardFillResult | None:
        """Job entry point. A sweep-level failure is logged and the run aborts."""
        logger.info("Starting scheduled forward-fill of balance snapshots")
        try:
            result = await self.forward_fill_missing_snapshots(now)
        except Exception:
            logger.exception("Scheduled forward-fill failed")
            return None
        logger.info(
            f"Scheduled forward-fill completed: {result.created} snapshots created, "
            f"{result.skipped} accounts skipped"
        )
        return result

    async def forward_fill_missing_snapshots(
        self, now: datetime | None = None
    ) -> ForwardFillResult:
        """Ensure every account has a snapshot for yesterday (owner's timezone).

        Args:
            now: Instant the sweep runs at (default: current time)

        Returns:
            ``created`` fills and ``skipped`` accounts (no earlier snapshot, or failed)
        """
        async with self._session_factory() as db:
            accounts = [
                (account.id, account.user_id)
                for account in await AccountRepository(db).find_all()
            ]
        logger.info(f"Found {len(accounts)} accounts to check")

        result = ForwardFillResult()
        for account_id, user_id in accounts:
            try:
                async with self._session_factory() as db:
                    timezone_name = await UserRepository(db).timezone_setting(user_id)
                    outcome = await self._forward_fill_account(
                        BalanceSnapshotService(db),
                        account_id,
                        user_id,
                        local_yesterday(timezone_name, now),
                    )
            except Exception:
                logger.warning(
                    f"Failed to forward-fill snapshot for account {account_id}", exc_info=True
                )
                result.skipped += 1
                continue

            if outcome is True:
                result.created += 1
            elif outcome is None:
                result.skipped += 1
        return result

    async def _forward_fill_account(
        self,
        service: BalanceSnapshotService,
        account_id: str,
        user_id: str,
        target_date: date,
    ) -> bool | None:
        """Copy the latest earlier snapshot to ``target_date`` if that day has none.

        Returns:
            True if created, False if the day already had a snapshot, None if
            there was nothing earlier to copy
        """
        if await service.find_by_account_id_and_date(account_id, user_id, target_date):
            logger.debug(f"Snapshot already exists for account {account_id} on {target_date}")
            return False

        previous = await service.find_most_recent_before_date(account_id, user_id, target_date)
        if previous is None:
            logger.debug(f"No previous snapshot for account {account_id}, skipping forward-fill")
            return None

        await service.upsert(
            BalanceSnapshotUpsert(
                account_id=account_id,
                snapshot_date=target_date,
                current_balance=previous.current_balance,
                available_balance=previous.available_balance,
                snapshot_type=BalanceSnapshotType.FORWARD_FILL,
            ),
            user_id,
        )
        logger.info(f"Created forward-fill snapshot for account {account_id} on {target_date}")
        return True
