"""Shared test fixtures: in-memory async database, users and accounts."""

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.constants import AccountType
from app.database import Base
from app.models import Account, BalanceSnapshot, User
from app.schemas.balance_snapshot import BalanceSnapshotType
from app.schemas.money import MoneyWithSign
from tests.helpers import money


@pytest.fixture
async def engine():
    """Async in-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def create_user(db):
    """Factory creating a user with optional currency/timezone preferences."""

    async def _create(
        email: str = "owner@example.com",
        currency: str | None = "USD",
        timezone: str | None = "UTC",
    ) -> User:
        user_settings = {}
        if currency:
            user_settings["currency"] = currency
        if timezone:
            user_settings["timezone"] = timezone
        user = User(email=email, settings=user_settings)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _create


@pytest.fixture
def create_account(db):
    """Factory creating an account holding the given balances."""

    async def _create(
        user: User,
        current: MoneyWithSign | None = None,
        available: MoneyWithSign | None = None,
        account_type: str = AccountType.DEPOSITORY,
        **fields,
    ) -> Account:
        current = current or money("USD", 10000)
        account = Account(
            user_id=user.id,
            name=fields.pop("name", "Checking"),
            account_type=account_type,
            provider_name=fields.pop("provider_name", "plaid"),
            **fields,
        )
        account.current_balance = current
        account.available_balance = available or current
        db.add(account)
        await db.commit()
        await db.refresh(account)
        return account

    return _create


@pytest.fixture
def create_snapshot(db):
    """Factory inserting a snapshot row directly."""

    async def _create(
        account: Account,
        snapshot_date: date,
        current: MoneyWithSign | None = None,
        available: MoneyWithSign | None = None,
        snapshot_type: BalanceSnapshotType = BalanceSnapshotType.SYNC,
    ) -> BalanceSnapshot:
        current = current or account.current_balance
        snapshot = BalanceSnapshot(
            user_id=account.user_id,
            account_id=account.id,
            snapshot_date=snapshot_date,
            snapshot_type=snapshot_type.value,
        )
        snapshot.current_balance = current
        snapshot.available_balance = available or current
        db.add(snapshot)
        await db.commit()
        await db.refresh(snapshot)
        return snapshot

    return _create


@pytest.fixture
async def user(create_user):
    return await create_user()


@pytest.fixture
async def account(create_account, user):
    return await create_account(user)
