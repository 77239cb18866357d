"""Account data access layer."""

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants import AccountType
from app.models import Account, User
from app.services.repositories.exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence


class AccountRepository:
    """Centralized account data access.

    Naming conventions:
    - find_* : Query that may return None or empty list
    - get_* : Query that raises exception if missing
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_id(self, account_id: str, user_id: str | None = None) -> Account | None:
        """Find account by primary key, optionally scoped to its owner."""
        query = select(Account).where(Account.id == account_id)
        if user_id is not None:
            query = query.where(Account.user_id == user_id)
        return (await self._db.execute(query)).scalar_one_or_none()

    async def get_by_id(self, account_id: str, user_id: str | None = None) -> Account:
        account = await self.find_by_id(account_id, user_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    async def find_by_user(self, user_id: str) -> "Sequence[Account]":
        """Find all accounts belonging to a user."""
        result = await self._db.execute(
            select(Account).where(Account.user_id == user_id).order_by(Account.created_at)
        )
        return result.scalars().all()

    async def find_all(self) -> "Sequence[Account]":
        """Find every account in the system (used by scheduled sweeps)."""
        result = await self._db.execute(select(Account).order_by(Account.created_at))
        return result.scalars().all()

    async def find_syncable(self) -> "Sequence[Account]":
        """Find accounts whose balances can be pulled on demand (crypto wallets)."""
        result = await self._db.execute(
            select(Account)
            .where(
                Account.account_type == AccountType.CRYPTO_WALLET,
                Account.wallet_network.is_not(None),
                Account.wallet_address.is_not(None),
            )
            .order_by(Account.created_at)
        )
        return result.scalars().all()

    async def find_types_by_ids(self, account_ids: list[str]) -> dict[str, str]:
        """Map account id to account type for the given ids."""
        if not account_ids:
            return {}
        result = await self._db.execute(
            select(Account.id, Account.account_type).where(Account.id.in_(account_ids))
        )
        return {account_id: account_type for account_id, account_type in result.all()}

    async def find_by_wallet(self, user_id: str, network: str, address: str) -> Account | None:
        result = await self._db.execute(
            select(Account).where(
                Account.user_id == user_id,
                Account.wallet_network == network,
                Account.wallet_address == address,
            )
        )
        return result.scalar_one_or_none()

    async def find_currency_pairs_by_user(self) -> list[tuple[str, str | None]]:
        """Distinct (account currency, owner's preferred currency setting) pairs.

        The preferred currency is None when the user never set one.
        """
        result = await self._db.execute(
            select(Account.current_balance_currency, User.settings).join(
                User, User.id == Account.user_id
            )
        )
        pairs = {
            (currency, (user_settings or {}).get("currency"))
            for currency, user_settings in result.all()
        }
        return sorted(pairs, key=lambda pair: (pair[0], pair[1] or ""))

    async def add(self, account: Account) -> Account:
        """Persist a new account and return it refreshed."""
        self._db.add(account)
        await self._db.commit()
        await self._db.refresh(account)
        return account

    async def save(self, account: Account) -> Account:
        """Commit pending changes to an existing account."""
        await self._db.commit()
        await self._db.refresh(account)
        return account
