"""Service for resolving, fetching and storing exchange rates.

Rates are cached in the ``exchange_rates`` table in normalised orientation
(see ``normalize_currency_pair``). Every lookup opens short-lived sessions from
the injected session factory, so concurrent lookups (``asyncio.gather``)
never share a connection and never hold one across a provider call.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models import ExchangeRate
from app.schemas.exchange_rate import (
    CurrencyPair,
    DailyExchangeRates,
    PairRate,
    RateQuote,
    RateSource,
)
from app.services.market_data.coingecko_client import CoinGeckoRateProvider
from app.services.market_data.frankfurter_client import FrankfurterRateProvider
from app.services.market_data.rate_provider import (
    CurrencyRateProvider,
    ExchangeRateProviderError,
)
from app.services.repositories import (
    AccountRepository,
    BalanceSnapshotRepository,
    ExchangeRateRepository,
    NotFoundError,
    UserRepository,
)
from app.services.shared.currency_pair import is_crypto_currency, normalize_currency_pair
from app.services.shared.timezone_utils import local_today, utc_today

logger = logging.getLogger(__name__)

ONE = Decimal(1)


class ExchangeRateService:
    """Cache-then-provider exchange rate resolution.

    Usage:
        service = ExchangeRateService(SessionLocal)
        quote = await service.get_rate("EUR", "USD", date(2024, 1, 10))
        if quote is not None:
            print(quote.rate, quote.rate_date)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fiat_provider: CurrencyRateProvider | None = None,
        crypto_provider: CurrencyRateProvider | None = None,
        max_concurrent_lookups: int | None = None,
    ):
        self._session_factory = session_factory
        self.fiat_provider = fiat_provider or FrankfurterRateProvider()
        self.crypto_provider = crypto_provider or CoinGeckoRateProvider()
        self._lookup_slots = asyncio.Semaphore(
            max_concurrent_lookups or settings.rate_lookup_concurrency
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_rate(
        self, base_currency: str, target_currency: str, rate_date: date | None = None
    ) -> RateQuote | None:
        """Resolve ``1 base = rate target`` for a day (latest when ``rate_date`` is None).

        Order: same currency, exact cached row, provider fetch (stored on
        success), most recent cached rate on or before the day. Returns None
        when all of them fail. Provider and database errors are logged, never
        raised.

        No session is held while the provider is called, and at most
        ``rate_lookup_concurrency`` lookups run at once.
        """
        base_currency = base_currency.upper()
        target_currency = target_currency.upper()
        lookup_date = rate_date or utc_today()

        if base_currency == target_currency:
            return RateQuote(
                base_currency=base_currency,
                target_currency=target_currency,
                rate=ONE,
                rate_date=lookup_date,
            )

        async with self._lookup_slots:
            try:
                quote = await self._resolve_rate(
                    base_currency, target_currency, rate_date, lookup_date
                )
            except SQLAlchemyError as e:
                logger.error(
                    f"Rate lookup for {base_currency}/{target_currency} failed on the database: {e}"
                )
                return None

        if quote is None:
            logger.warning(f"No exchange rate available for {base_currency}/{target_currency}")
        return quote

    async def _resolve_rate(
        self, base_currency: str, target_currency: str, rate_date: date | None, lookup_date: date
    ) -> RateQuote | None:
        pair = normalize_currency_pair(base_currency, target_currency)

        async with self._session_factory() as db:
            row = await ExchangeRateRepository(db).find_by_pair_and_date(
                pair.base, pair.target, lookup_date
            )
        if row is not None:
            return _quote(row, base_currency, target_currency, pair.inverted)

        try:
            fetched = await self._fetch_rate(pair.base, pair.target, rate_date)
        except ExchangeRateProviderError as e:
            logger.warning(f"Rate fetch failed, trying cached rates: {e}")
        else:
            async with self._session_factory() as db:
                await ExchangeRateRepository(db).upsert(
                    pair.base, pair.target, fetched, lookup_date
                )
            return RateQuote(
                base_currency=base_currency,
                target_currency=target_currency,
                rate=ONE / fetched if pair.inverted else fetched,
                rate_date=lookup_date,
            )

        async with self._session_factory() as db:
            row = await ExchangeRateRepository(db).find_latest(
                pair.base, pair.target, on_or_before=lookup_date
            )
        if row is None:
            return None
        logger.info(
            f"Using {row.rate_date} rate for {base_currency}/{target_currency} "
            f"(requested {lookup_date})"
        )
        return _quote(row, base_currency, target_currency, pair.inverted)

    async def get_latest_rate(self, base_currency: str, target_currency: str) -> RateQuote | None:
        """Most recent cached rate for a pair, without calling providers."""
        base_currency = base_currency.upper()
        target_currency = target_currency.upper()
        if base_currency == target_currency:
            return RateQuote(
                base_currency=base_currency,
                target_currency=target_currency,
                rate=ONE,
                rate_date=utc_today(),
            )

        pair = normalize_currency_pair(base_currency, target_currency)
        async with self._session_factory() as db:
            row = await ExchangeRateRepository(db).find_latest(pair.base, pair.target)
        if row is None:
            return None
        return _quote(row, base_currency, target_currency, pair.inverted)

    async def get_rates_for_date(self, rate_date: date) -> list[ExchangeRate]:
        async with self._session_factory() as db:
            return list(await ExchangeRateRepository(db).find_by_date(rate_date))

    async def get_rates_for_date_range(
        self, pairs: list[CurrencyPair], start_date: date, end_date: date
    ) -> list[DailyExchangeRates]:
        """Daily rates for several pairs, gaps filled from neighbouring stored rates.

        A missing day takes the last known rate before it, or the next known
        rate when nothing earlier exists.

        Raises:
            NotFoundError: a pair has no stored rate at all
            ValueError: ``start_date`` is after ``end_date``
        """
        if start_date > end_date:
            raise ValueError("start_date must not be after end_date")

        series_by_pair: list[tuple[CurrencyPair, dict[date, tuple[Decimal, RateSource]]]] = []
        async with self._session_factory() as db:
            repo = ExchangeRateRepository(db)
            for requested in pairs:
                series = await self._fill_pair_series(repo, requested, start_date, end_date)
                series_by_pair.append((requested, series))

        days: list[DailyExchangeRates] = []
        day = start_date
        while day <= end_date:
            days.append(
                DailyExchangeRates(
                    date=day,
                    rates=[
                        PairRate(
                            base_currency=requested.base_currency,
                            target_currency=requested.target_currency,
                            rate=series[day][0],
                            source=series[day][1],
                        )
                        for requested, series in series_by_pair
                    ],
                )
            )
            day += timedelta(days=1)
        return days

    async def _fill_pair_series(
        self,
        repo: ExchangeRateRepository,
        requested: CurrencyPair,
        start_date: date,
        end_date: date,
    ) -> dict[date, tuple[Decimal, RateSource]]:
        base, target = requested.base_currency, requested.target_currency
        if base == target:
            return _constant_series(ONE, start_date, end_date)

        pair = normalize_currency_pair(base, target)
        stored = {
            row.rate_date: _oriented(row.rate, pair.inverted)
            for row in await repo.find_by_pairs_in_range(
                [(pair.base, pair.target)], start_date, end_date
            )
        }

        last_known: Decimal | None = None
        before = await repo.find_latest(pair.base, pair.target, on_or_before=start_date)
        if before is not None:
            last_known = _oriented(before.rate, pair.inverted)

        next_known: Decimal | None = None
        if stored:
            next_known = stored[min(stored)]
        elif last_known is None:
            after = await repo.find_earliest_after(pair.base, pair.target, end_date)
            if after is None:
                raise NotFoundError("ExchangeRate", f"{base}/{target}")
            next_known = _oriented(after.rate, pair.inverted)

        series: dict[date, tuple[Decimal, RateSource]] = {}
        day = start_date
        while day <= end_date:
            if day in stored:
                last_known = stored[day]
                series[day] = (last_known, RateSource.DB)
            else:
                series[day] = (
                    last_known if last_known is not None else next_known,
                    RateSource.FILLED,
                )
            day += timedelta(days=1)
        return series

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_rate(
        self, base_currency: str, target_currency: str, rate: Decimal, rate_date: date
    ) -> None:
        """Store a rate given in any orientation under its normalised pair."""
        pair = normalize_currency_pair(base_currency, target_currency)
        stored_rate = _oriented(Decimal(rate), pair.inverted)
        async with self._session_factory() as db:
            await ExchangeRateRepository(db).upsert(pair.base, pair.target, stored_rate, rate_date)

    async def get_required_currency_pairs(self) -> list[CurrencyPair]:
        """Distinct normalised pairs needed to show every account in its owner's currency."""
        async with self._session_factory() as db:
            rows = await AccountRepository(db).find_currency_pairs_by_user()

        pairs: set[CurrencyPair] = set()
        for account_currency, user_currency in rows:
            user_currency = (user_currency or settings.default_currency).upper()
            if account_currency == user_currency:
                continue
            pair = normalize_currency_pair(account_currency, user_currency)
            pairs.add(CurrencyPair(base_currency=pair.base, target_currency=pair.target))

        logger.info(f"Found {len(pairs)} unique currency pairs to track")
        return sorted(pairs, key=lambda p: (p.base_currency, p.target_currency))

    async def sync_daily_rates(self) -> dict:
        """Fetch today's rate for every required pair, one provider call per base currency.

        Returns:
            Dict with update statistics
        """
        today = utc_today()
        stats: dict = {"date": today, "updated": 0, "failed": 0}

        targets_by_base: dict[str, list[str]] = defaultdict(list)
        for pair in await self.get_required_currency_pairs():
            targets_by_base[pair.base_currency].append(pair.target_currency)

        if not targets_by_base:
            logger.info("No currency pairs to sync")
            return stats

        for base_currency, targets in sorted(targets_by_base.items()):
            try:
                rates = await self._fetch_latest_rates(base_currency, targets)
            except ExchangeRateProviderError:
                logger.exception(f"Failed to sync {base_currency} rates")
                stats["failed"] += len(targets)
                continue

            for target_currency in targets:
                rate = rates.get(target_currency)
                if rate is None:
                    stats["failed"] += 1
                    continue
                await self.upsert_rate(base_currency, target_currency, rate, today)
                stats["updated"] += 1

        logger.info(f"Synced {stats['updated']} exchange rates for {today}")
        return stats

    async def backfill_rates_for_user(self, user_id: str) -> dict:
        """Store historical rates from a user's earliest snapshot day to today.

        Pairs whose rates already exist for every day of the range are skipped
        without calling the provider.

        Returns:
            Dict with ``inserted``/``skipped`` counts
        """
        stats: dict = {"inserted": 0, "skipped": 0, "failed": 0}

        async with self._session_factory() as db:
            users = UserRepository(db)
            user_currency = await users.currency_setting(user_id)
            today = local_today(await users.timezone_setting(user_id))
            earliest_by_currency = await BalanceSnapshotRepository(
                db
            ).find_earliest_dates_by_currency(user_id)

        # base -> (targets, earliest date needed)
        batches: dict[str, tuple[list[str], date]] = {}
        for currency, earliest in sorted(earliest_by_currency.items()):
            if currency == user_currency:
                continue
            pair = normalize_currency_pair(currency, user_currency)
            targets, batch_start = batches.get(pair.base, ([], earliest))
            if pair.target not in targets:
                targets.append(pair.target)
            batches[pair.base] = (targets, min(batch_start, earliest))

        for base_currency, (targets, start_date) in batches.items():
            async with self._session_factory() as db:
                repo = ExchangeRateRepository(db)
                existing = {
                    target: await repo.find_dates_for_pair(base_currency, target, start_date, today)
                    for target in targets
                }
            required_days = (today - start_date).days + 1
            if all(len(days) >= required_days for days in existing.values()):
                logger.info(f"All {base_currency} rates already stored, skipping fetch")
                continue

            try:
                series = await self._fetch_series(base_currency, targets, start_date, today)
            except ExchangeRateProviderError:
                logger.exception(f"Error backfilling {base_currency} rates")
                stats["failed"] += 1
                continue

            for day, day_rates in sorted(series.items()):
                for target_currency, rate in day_rates.items():
                    if day in existing.get(target_currency, set()):
                        stats["skipped"] += 1
                        continue
                    await self.upsert_rate(base_currency, target_currency, rate, day)
                    stats["inserted"] += 1

        logger.info(
            f"Backfill for user {user_id}: {stats['inserted']} inserted, "
            f"{stats['skipped']} skipped"
        )
        return stats

    # ------------------------------------------------------------------
    # Provider routing
    # ------------------------------------------------------------------

    async def _fetch_rate(self, base: str, target: str, rate_date: date | None) -> Decimal:
        """Fetch a normalised pair from the provider that quotes it."""
        if is_crypto_currency(base):
            return await self.crypto_provider.get_rate(base, target, rate_date)
        if is_crypto_currency(target):
            return ONE / await self.crypto_provider.get_rate(target, base, rate_date)
        return await self.fiat_provider.get_rate(base, target, rate_date)

    async def _fetch_latest_rates(self, base: str, targets: list[str]) -> dict[str, Decimal]:
        if is_crypto_currency(base) or any(is_crypto_currency(t) for t in targets):
            return {target: await self._fetch_rate(base, target, None) for target in targets}
        return await self.fiat_provider.get_latest_rates(base, targets)

    async def _fetch_series(
        self, base: str, targets: list[str], start_date: date, end_date: date
    ) -> dict[date, dict[str, Decimal]]:
        if is_crypto_currency(base):
            return await self.crypto_provider.get_historical_rates(
                base, targets, start_date, end_date
            )

        series: dict[date, dict[str, Decimal]] = defaultdict(dict)
        fiat_targets = [t for t in targets if not is_crypto_currency(t)]
        if fiat_targets:
            fiat_series = await self.fiat_provider.get_historical_rates(
                base, fiat_targets, start_date, end_date
            )
            for day, day_rates in fiat_series.items():
                series[day].update(day_rates)

        for crypto_target in (t for t in targets if is_crypto_currency(t)):
            crypto_series = await self.crypto_provider.get_historical_rates(
                crypto_target, [base], start_date, end_date
            )
            for day, day_rates in crypto_series.items():
                if base in day_rates:
                    series[day][crypto_target] = ONE / day_rates[base]
        return dict(series)


def _oriented(rate: Decimal, inverted: bool) -> Decimal:
    rate = Decimal(str(rate))
    return ONE / rate if inverted else rate


def _quote(row: ExchangeRate, base: str, target: str, inverted: bool) -> RateQuote:
    return RateQuote(
        base_currency=base,
        target_currency=target,
        rate=_oriented(row.rate, inverted),
        rate_date=row.rate_date,
    )


def _constant_series(
    rate: Decimal, start_date: date, end_date: date
) -> dict[date, tuple[Decimal, RateSource]]:
    series = {}
    day = start_date
    while day <= end_date:
        series[day] = (rate, RateSource.DB)
        day += timedelta(days=1)
    return series
