"""Refreshes linked account balances and announces the changes."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.constants import NETWORK_CURRENCIES, AccountType, LinkedAccountEvents
from app.events import EventBus, event_bus
from app.models import Account
from app.schemas.account import Account as AccountSchema
from app.schemas.account import AccountChangedEvent
from app.schemas.money import MoneyWithSign
from app.services.crypto_balance_service import CryptoBalanceService, validate_address
from app.services.repositories import AccountRepository

logger = logging.getLogger(__name__)


class InvalidWalletAddressError(ValueError):
    """Wallet address does not match the network's address format."""


class AccountSyncService:
    """Pulls balances for syncable accounts (crypto wallets) and publishes events.

    Bank links are webhook-driven and have no pull source here, so they are
    left alone by the sync job.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        crypto_balance_service: CryptoBalanceService | None = None,
        bus: EventBus | None = None,
    ):
        self._session_factory = session_factory
        self.crypto_balance_service = crypto_balance_service or CryptoBalanceService()
        self.bus = bus or event_bus

    async def _read_wallet_balance(self, network: str, address: str) -> MoneyWithSign:
        balance = await self.crypto_balance_service.get_balance(network, address)
        return MoneyWithSign.from_decimal(NETWORK_CURRENCIES[network], balance)

    async def sync_account(self, db: AsyncSession, account: Account) -> bool:
        """Refresh one account's balances.

        Returns:
            True if the account was updated, False if it has no sync source
        """
        if account.account_type != AccountType.CRYPTO_WALLET or not account.wallet_address:
            logger.debug(f"Account {account.id} has no sync source, skipping")
            return False

        balance = await self._read_wallet_balance(account.wallet_network, account.wallet_address)
        account.current_balance = balance
        account.available_balance = balance
        account = await AccountRepository(db).save(account)

        await self.bus.publish(
            LinkedAccountEvents.UPDATED, AccountChangedEvent.model_validate(account)
        )
        logger.info(f"Synced account {account.id}: {balance.to_decimal()} {balance.money.currency}")
        return True

    async def handle_sync_all_accounts(self) -> dict:
        """Job entry point: sync every syncable account.

        Returns:
            Dict with ``synced``/``skipped``/``failed`` counts
        """
        stats = {"synced": 0, "skipped": 0, "failed": 0}

        async with self._session_factory() as db:
            account_ids = [account.id for account in await AccountRepository(db).find_syncable()]
        logger.info(f"Syncing {len(account_ids)} accounts")

        for account_id in account_ids:
            try:
                async with self._session_factory() as db:
                    account = await AccountRepository(db).find_by_id(account_id)
                    if account is None or not await self.sync_account(db, account):
                        stats["skipped"] += 1
                        continue
                stats["synced"] += 1
            except Exception:
                logger.exception(f"Failed to sync account {account_id}")
                stats["failed"] += 1

        logger.info(
            f"Account sync completed: {stats['synced']} synced, {stats['skipped']} skipped, "
            f"{stats['failed']} failed"
        )
        return stats

    async def link_crypto_wallet(
        self, user_id: str, network: str, address: str, name: str | None = None
    ) -> AccountSchema:
        """Create a crypto wallet account with its current on-chain balance.

        Linking the same wallet twice refreshes the existing account.

        Raises:
            InvalidWalletAddressError: address format does not match the network
            CryptoBalanceError: balance could not be read
        """
        if not validate_address(network, address):
            logger.warning(f"Invalid {network} address format: {address[:10]}")
            raise InvalidWalletAddressError(f"Invalid {network} address format")

        balance = await self._read_wallet_balance(network, address)

        async with self._session_factory() as db:
            repo = AccountRepository(db)
            account = await repo.find_by_wallet(user_id, network, address)
            event_name = LinkedAccountEvents.UPDATED
            if account is None:
                account = Account(
                    user_id=user_id,
                    name=name or f"{NETWORK_CURRENCIES[network]} wallet",
                    mask=address[-4:],
                    account_type=AccountType.CRYPTO_WALLET,
                    provider_name="crypto",
                    wallet_network=network,
                    wallet_address=address,
                )
                event_name = LinkedAccountEvents.CREATED
            account.current_balance = balance
            account.available_balance = balance
            if event_name == LinkedAccountEvents.CREATED:
                account = await repo.add(account)
            else:
                account = await repo.save(account)
            result = AccountSchema.model_validate(account)

        await self.bus.publish(event_name, AccountChangedEvent.model_validate(account))
        logger.info(f"Linked {network} wallet {address[:10]} as account {result.id}")
        return result
