"""Balance snapshot ledger: one row per account per user-local day."""

import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import BalanceSnapshot as BalanceSnapshotModel
from app.schemas.balance_snapshot import (
    BalanceSnapshot,
    BalanceSnapshotType,
    BalanceSnapshotUpdate,
    BalanceSnapshotUpsert,
    BalanceSnapshotWithConversion,
)
from app.services.currency_conversion_service import CurrencyConversionService
from app.services.repositories import (
    AccountRepository,
    BalanceSnapshotRepository,
    DuplicateError,
)
from app.services.shared.balance_conversion_helper import BalanceConversionHelper
from app.services.shared.timezone_utils import utc_today

logger = logging.getLogger(__name__)


class BalanceSnapshotService:
    """Read/write API over balance snapshots, scoped to the owning user.

    Not-found lookups return None (or False for ``remove``); the router maps
    them to 404.
    """

    def __init__(
        self, db: AsyncSession, conversion_service: CurrencyConversionService | None = None
    ):
        self._db = db
        self._snapshots = BalanceSnapshotRepository(db)
        self._accounts = AccountRepository(db)
        self._conversion_service = conversion_service

    @property
    def conversion_helper(self) -> BalanceConversionHelper:
        if self._conversion_service is None:
            raise RuntimeError("BalanceSnapshotService was built without a conversion service")
        return BalanceConversionHelper(self._db, self._conversion_service)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def find_all(self, user_id: str) -> list[BalanceSnapshot]:
        return [
            BalanceSnapshot.model_validate(row)
            for row in await self._snapshots.find_by_user(user_id)
        ]

    async def find_by_account_id(self, account_id: str, user_id: str) -> list[BalanceSnapshot]:
        """Snapshots of one account, newest day first."""
        rows = await self._snapshots.find_by_account_id(account_id, user_id)
        logger.info(f"Found {len(rows)} balance snapshots for account {account_id}")
        return [BalanceSnapshot.model_validate(row) for row in rows]

    async def find_one(self, snapshot_id: str, user_id: str) -> BalanceSnapshot | None:
        row = await self._snapshots.find_by_id(snapshot_id, user_id)
        return BalanceSnapshot.model_validate(row) if row is not None else None

    async def create(self, dto: BalanceSnapshotUpsert, user_id: str) -> BalanceSnapshot:
        """Insert a new snapshot.

        Raises:
            DuplicateError: the account already has a snapshot on that day
        """
        snapshot = BalanceSnapshotModel(
            user_id=user_id,
            account_id=dto.account_id,
            snapshot_date=dto.snapshot_date or utc_today(),
            snapshot_type=dto.snapshot_type.value,
        )
        snapshot.current_balance = dto.current_balance
        snapshot.available_balance = dto.available_balance
        try:
            row = await self._snapshots.add(snapshot)
        except IntegrityError as e:
            await self._db.rollback()
            raise DuplicateError(
                "BalanceSnapshot",
                account_id=dto.account_id,
                snapshot_date=snapshot.snapshot_date,
            ) from e
        return BalanceSnapshot.model_validate(row)

    async def update(
        self, snapshot_id: str, dto: BalanceSnapshotUpdate, user_id: str
    ) -> BalanceSnapshot | None:
        """Apply the fields set on ``dto``."""
        row = await self._snapshots.find_by_id(snapshot_id, user_id)
        if row is None:
            return None
        if dto.current_balance is not None:
            row.current_balance = dto.current_balance
        if dto.available_balance is not None:
            row.available_balance = dto.available_balance
        if dto.snapshot_type is not None:
            row.snapshot_type = dto.snapshot_type.value
        return BalanceSnapshot.model_validate(await self._snapshots.save(row))

    async def remove(self, snapshot_id: str, user_id: str) -> bool:
        """Delete a snapshot on explicit user request."""
        row = await self._snapshots.find_by_id(snapshot_id, user_id)
        if row is None:
            return False
        await self._snapshots.delete(row)
        logger.info(f"Balance snapshot deleted: id={snapshot_id}")
        return True

    async def upsert(self, dto: BalanceSnapshotUpsert, user_id: str) -> BalanceSnapshot:
        """Create the (account, day) snapshot or overwrite its balances and type.

        ``snapshot_date`` defaults to the current UTC date. Concurrent calls for
        the same key converge on a single row.
        """
        snapshot_date = dto.snapshot_date or utc_today()
        logger.info(
            f"Upserting balance snapshot: account_id={dto.account_id}, date={snapshot_date}, "
            f"user_id={user_id}"
        )
        row = await self._snapshots.upsert(
            user_id=user_id,
            account_id=dto.account_id,
            snapshot_date=snapshot_date,
            current_balance=dto.current_balance,
            available_balance=dto.available_balance,
            snapshot_type=dto.snapshot_type.value,
        )
        return BalanceSnapshot.model_validate(row)

    # ------------------------------------------------------------------
    # Forward-fill helpers
    # ------------------------------------------------------------------

    async def find_by_account_id_and_date(
        self, account_id: str, user_id: str, snapshot_date: date
    ) -> BalanceSnapshot | None:
        row = await self._snapshots.find_by_account_id_and_date(account_id, snapshot_date, user_id)
        return BalanceSnapshot.model_validate(row) if row is not None else None

    async def find_most_recent_before_date(
        self, account_id: str, user_id: str, before_date: date
    ) -> BalanceSnapshot | None:
        """Latest snapshot strictly before ``before_date``."""
        row = await self._snapshots.find_most_recent_before_date(account_id, before_date, user_id)
        return BalanceSnapshot.model_validate(row) if row is not None else None

    async def get_last_sync_times(
        self, user_id: str, account_id: str | None = None
    ) -> dict[str, datetime]:
        """Creation time of the newest SYNC snapshot, per account."""
        return await self._snapshots.find_last_sync_times(
            user_id, BalanceSnapshotType.SYNC.value, account_id
        )

    # ------------------------------------------------------------------
    # Converted reads
    # ------------------------------------------------------------------

    async def find_all_with_conversion(self, user_id: str) -> list[BalanceSnapshotWithConversion]:
        return await self._with_conversion(await self.find_all(user_id), user_id)

    async def find_by_account_id_with_conversion(
        self, account_id: str, user_id: str
    ) -> list[BalanceSnapshotWithConversion]:
        return await self._with_conversion(
            await self.find_by_account_id(account_id, user_id), user_id
        )

    async def find_snapshots_for_date_with_conversion(
        self, user_id: str, snapshot_date: date
    ) -> dict[str, BalanceSnapshotWithConversion]:
        """Snapshots of every account on one day, keyed by account id."""
        rows = await self._snapshots.find_by_user_and_date(user_id, snapshot_date)
        if not rows:
            return {}
        converted = await self._with_conversion(
            [BalanceSnapshot.model_validate(row) for row in rows], user_id
        )
        return {snapshot.account_id: snapshot for snapshot in converted}

    async def _with_conversion(
        self, snapshots: list[BalanceSnapshot], user_id: str
    ) -> list[BalanceSnapshotWithConversion]:
        # Historical rate of the snapshot's own day, account type for effective balance
        account_types = await self._accounts.find_types_by_ids(
            sorted({snapshot.account_id for snapshot in snapshots})
        )
        items = [
            BalanceSnapshotWithConversion(
                **snapshot.model_dump(),
                currency_date=snapshot.snapshot_date,
                account_type=account_types.get(snapshot.account_id),
            )
            for snapshot in snapshots
        ]
        return await self.conversion_helper.add_converted_balances(items, user_id)
