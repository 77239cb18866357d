"""Exchange rate data access layer."""

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import and_, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ExchangeRate
from app.services.repositories.upsert import insert_for

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class ExchangeRateRepository:
    """Centralized exchange rate data access.

    Pairs are passed in stored (normalised) orientation; callers handle
    inversion.

    Naming conventions:
    - find_* : Query that may return None or empty list
    - get_* : Query that raises exception if missing
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_pair_and_date(
        self, base_currency: str, target_currency: str, rate_date: date
    ) -> ExchangeRate | None:
        result = await self._db.execute(
            select(ExchangeRate).where(
                ExchangeRate.base_currency == base_currency,
                ExchangeRate.target_currency == target_currency,
                ExchangeRate.rate_date == rate_date,
            )
        )
        return result.scalar_one_or_none()

    async def find_latest(
        self, base_currency: str, target_currency: str, on_or_before: date | None = None
    ) -> ExchangeRate | None:
        """Find the most recent rate for a pair, optionally capped at a date."""
        query = select(ExchangeRate).where(
            ExchangeRate.base_currency == base_currency,
            ExchangeRate.target_currency == target_currency,
        )
        if on_or_before is not None:
            query = query.where(ExchangeRate.rate_date <= on_or_before)
        query = query.order_by(desc(ExchangeRate.rate_date)).limit(1)
        return (await self._db.execute(query)).scalar_one_or_none()

    async def find_earliest_after(
        self, base_currency: str, target_currency: str, after: date
    ) -> ExchangeRate | None:
        result = await self._db.execute(
            select(ExchangeRate)
            .where(
                ExchangeRate.base_currency == base_currency,
                ExchangeRate.target_currency == target_currency,
                ExchangeRate.rate_date > after,
            )
            .order_by(ExchangeRate.rate_date)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_date(self, rate_date: date) -> "Sequence[ExchangeRate]":
        result = await self._db.execute(
            select(ExchangeRate)
            .where(ExchangeRate.rate_date == rate_date)
            .order_by(ExchangeRate.base_currency, ExchangeRate.target_currency)
        )
        return result.scalars().all()

    async def find_by_pairs_in_range(
        self, pairs: list[tuple[str, str]], start_date: date, end_date: date
    ) -> "Sequence[ExchangeRate]":
        """Find stored rates for several pairs between two dates (inclusive), oldest first."""
        if not pairs:
            return []
        pair_filter = or_(
            *(
                and_(ExchangeRate.base_currency == base, ExchangeRate.target_currency == target)
                for base, target in pairs
            )
        )
        result = await self._db.execute(
            select(ExchangeRate)
            .where(
                pair_filter,
                ExchangeRate.rate_date >= start_date,
                ExchangeRate.rate_date <= end_date,
            )
            .order_by(ExchangeRate.rate_date)
        )
        return result.scalars().all()

    async def find_dates_for_pair(
        self, base_currency: str, target_currency: str, start_date: date, end_date: date
    ) -> set[date]:
        result = await self._db.execute(
            select(ExchangeRate.rate_date).where(
                ExchangeRate.base_currency == base_currency,
                ExchangeRate.target_currency == target_currency,
                ExchangeRate.rate_date >= start_date,
                ExchangeRate.rate_date <= end_date,
            )
        )
        return set(result.scalars().all())

    async def upsert(
        self, base_currency: str, target_currency: str, rate: Decimal, rate_date: date
    ) -> None:
        """Insert a rate or overwrite the stored value for the same pair and day."""
        stmt = insert_for(self._db, ExchangeRate).values(
            base_currency=base_currency,
            target_currency=target_currency,
            rate=rate,
            rate_date=rate_date,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["base_currency", "target_currency", "rate_date"],
            set_={"rate": stmt.excluded.rate},
        )
        await self._db.execute(stmt)
        await self._db.commit()
