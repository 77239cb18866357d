"""Balance snapshot data access layer."""

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import BalanceSnapshot
from app.models.balance_columns import balance_column_values
from app.schemas.money import MoneyWithSign
from app.services.repositories.exceptions import DuplicateError
from app.services.repositories.upsert import insert_for

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class BalanceSnapshotRepository:
    """Centralized balance snapshot data access.

    Naming conventions:
    - find_* : Query that may return None or empty list
    - get_* : Query that raises exception if missing
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_id(self, snapshot_id: str, user_id: str) -> BalanceSnapshot | None:
        result = await self._db.execute(
            select(BalanceSnapshot).where(
                BalanceSnapshot.id == snapshot_id, BalanceSnapshot.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def find_by_user(self, user_id: str) -> "Sequence[BalanceSnapshot]":
        """Find all snapshots of a user, newest day first."""
        result = await self._db.execute(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.user_id == user_id)
            .order_by(desc(BalanceSnapshot.snapshot_date), BalanceSnapshot.account_id)
        )
        return result.scalars().all()

    async def find_by_account_id(
        self, account_id: str, user_id: str
    ) -> "Sequence[BalanceSnapshot]":
        """Find the snapshot history of one account, newest day first."""
        result = await self._db.execute(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account_id, BalanceSnapshot.user_id == user_id)
            .order_by(desc(BalanceSnapshot.snapshot_date))
        )
        return result.scalars().all()

    async def find_by_user_and_date(
        self, user_id: str, snapshot_date: date
    ) -> "Sequence[BalanceSnapshot]":
        result = await self._db.execute(
            select(BalanceSnapshot)
            .where(
                BalanceSnapshot.user_id == user_id,
                BalanceSnapshot.snapshot_date == snapshot_date,
            )
            .order_by(BalanceSnapshot.account_id)
        )
        return result.scalars().all()

    async def find_by_account_id_and_date(
        self, account_id: str, snapshot_date: date, user_id: str | None = None
    ) -> BalanceSnapshot | None:
        """Find the snapshot of an account on a given day."""
        query = select(BalanceSnapshot).where(
            BalanceSnapshot.account_id == account_id,
            BalanceSnapshot.snapshot_date == snapshot_date,
        )
        if user_id is not None:
            query = query.where(BalanceSnapshot.user_id == user_id)
        return (await self._db.execute(query)).scalar_one_or_none()

    async def find_most_recent_before_date(
        self, account_id: str, before_date: date, user_id: str | None = None
    ) -> BalanceSnapshot | None:
        """Find the latest snapshot strictly earlier than ``before_date``."""
        query = select(BalanceSnapshot).where(
            BalanceSnapshot.account_id == account_id,
            BalanceSnapshot.snapshot_date < before_date,
        )
        if user_id is not None:
            query = query.where(BalanceSnapshot.user_id == user_id)
        query = query.order_by(desc(BalanceSnapshot.snapshot_date)).limit(1)
        return (await self._db.execute(query)).scalar_one_or_none()

    async def find_earliest_dates_by_currency(self, user_id: str) -> dict[str, date]:
        """Earliest snapshot day for each balance currency held by a user."""
        result = await self._db.execute(
            select(
                BalanceSnapshot.current_balance_currency, func.min(BalanceSnapshot.snapshot_date)
            )
            .where(BalanceSnapshot.user_id == user_id)
            .group_by(BalanceSnapshot.current_balance_currency)
        )
        return {currency: earliest for currency, earliest in result.all()}

    async def find_last_sync_times(
        self, user_id: str, snapshot_type: str, account_id: str | None = None
    ) -> dict[str, datetime]:
        """Latest ``created_at`` among snapshots of ``snapshot_type``, per account."""
        query = (
            select(BalanceSnapshot.account_id, func.max(BalanceSnapshot.created_at))
            .where(
                BalanceSnapshot.user_id == user_id,
                BalanceSnapshot.snapshot_type == snapshot_type,
            )
            .group_by(BalanceSnapshot.account_id)
        )
        if account_id is not None:
            query = query.where(BalanceSnapshot.account_id == account_id)
        result = await self._db.execute(query)
        return {row_account_id: created_at for row_account_id, created_at in result.all()}

    async def upsert(
        self,
        *,
        user_id: str,
        account_id: str,
        snapshot_date: date,
        current_balance: MoneyWithSign,
        available_balance: MoneyWithSign,
        snapshot_type: str,
    ) -> BalanceSnapshot:
        """Insert the (account, day) snapshot or overwrite its balances and type.

        Executed as one INSERT ... ON CONFLICT statement on the
        ``(account_id, snapshot_date)`` unique key. A conflicting row owned by
        a different user is left untouched and reported as DuplicateError.
        """
        values = {
            "user_id": user_id,
            "account_id": account_id,
            "snapshot_date": snapshot_date,
            "snapshot_type": snapshot_type,
            **balance_column_values("current_balance", current_balance),
            **balance_column_values("available_balance", available_balance),
        }
        stmt = insert_for(self._db, BalanceSnapshot).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "snapshot_date"],
            set_={
                "snapshot_type": stmt.excluded.snapshot_type,
                "current_balance_amount": stmt.excluded.current_balance_amount,
                "current_balance_currency": stmt.excluded.current_balance_currency,
                "current_balance_sign": stmt.excluded.current_balance_sign,
                "available_balance_amount": stmt.excluded.available_balance_amount,
                "available_balance_currency": stmt.excluded.available_balance_currency,
                "available_balance_sign": stmt.excluded.available_balance_sign,
                "updated_at": func.now(),
            },
            where=BalanceSnapshot.user_id == user_id,
        )
        await self._db.execute(stmt)
        await self._db.commit()

        result = await self._db.execute(
            select(BalanceSnapshot)
            .where(
                BalanceSnapshot.account_id == account_id,
                BalanceSnapshot.snapshot_date == snapshot_date,
                BalanceSnapshot.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            logger.warning(f"Snapshot slot {account_id}/{snapshot_date} is owned by another user")
            raise DuplicateError(
                "BalanceSnapshot", account_id=account_id, snapshot_date=snapshot_date
            )
        return snapshot

    async def add(self, snapshot: BalanceSnapshot) -> BalanceSnapshot:
        self._db.add(snapshot)
        await self._db.commit()
        await self._db.refresh(snapshot)
        return snapshot

    async def save(self, snapshot: BalanceSnapshot) -> BalanceSnapshot:
        await self._db.commit()
        await self._db.refresh(snapshot)
        return snapshot

    async def delete(self, snapshot: BalanceSnapshot) -> None:
        await self._db.delete(snapshot)
        await self._db.commit()
