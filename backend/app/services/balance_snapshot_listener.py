"""Creates SYNC snapshots when linked accounts change."""

import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.constants import LinkedAccountEvents
from app.events import EventBus
from app.schemas.account import AccountChangedEvent
from app.schemas.balance_snapshot import BalanceSnapshotType, BalanceSnapshotUpsert
from app.services.balance_snapshot_service import BalanceSnapshotService
from app.services.repositories import UserRepository
from app.services.shared.timezone_utils import local_today

logger = logging.getLogger(__name__)


class BalanceSnapshotListener:
    """Upserts today's snapshot for an account on ``linked-account.*`` events.

    Failures are logged and swallowed so the publishing pipeline never
    breaks.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def register(self, bus: EventBus) -> None:
        bus.subscribe(LinkedAccountEvents.CREATED, self.handle_linked_account_changed)
        bus.subscribe(LinkedAccountEvents.UPDATED, self.handle_linked_account_changed)

    def unregister(self, bus: EventBus) -> None:
        bus.unsubscribe(LinkedAccountEvents.CREATED, self.handle_linked_account_changed)
        bus.unsubscribe(LinkedAccountEvents.UPDATED, self.handle_linked_account_changed)

    async def handle_linked_account_changed(
        self, event: AccountChangedEvent, now: datetime | None = None
    ) -> None:
        logger.info(f"Handling linked account event: account_id={event.id}")
        try:
            async with self._session_factory() as db:
                snapshot_date = await self._snapshot_date(db, event.user_id, now)
                await BalanceSnapshotService(db).upsert(
                    BalanceSnapshotUpsert(
                        account_id=event.id,
                        snapshot_date=snapshot_date,
                        current_balance=event.current_balance,
                        available_balance=event.available_balance,
                        snapshot_type=BalanceSnapshotType.SYNC,
                    ),
                    event.user_id,
                )
            logger.info(f"Balance snapshot upserted for account {event.id} on {snapshot_date}")
        except Exception:
            logger.exception(f"Failed to upsert balance snapshot for account {event.id}")

    async def _snapshot_date(
        self, db: AsyncSession, user_id: str, now: datetime | None
    ) -> date:
        """Today in the owner's timezone (default timezone, then UTC, when unknown)."""
        try:
            timezone_name = await UserRepository(db).timezone_setting(user_id)
        except SQLAlchemyError:
            logger.warning(f"Could not load timezone for user {user_id}, using default")
            await db.rollback()
            timezone_name = None
        return local_today(timezone_name, now)
