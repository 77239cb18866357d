"""Tests for the HTTP routes (services mocked, real bearer tokens)."""

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.database import get_db
from app.dependencies.services import (
    get_account_sync_service,
    get_balance_snapshot_service,
    get_exchange_rate_service,
    get_task_registry,
)
from app.main import app
from app.rate_limiter import limiter
from app.scheduling import RecurringTask, TaskRegistry
from app.schemas.account import Account
from app.schemas.balance_snapshot import (
    BalanceSnapshot,
    BalanceSnapshotType,
    BalanceSnapshotWithConversion,
    ForwardFillResult,
)
from app.schemas.exchange_rate import DailyExchangeRates, PairRate, RateQuote, RateSource
from app.services.account_sync_service import InvalidWalletAddressError
from app.services.crypto_balance_service import CryptoBalanceError
from app.services.repositories import DuplicateError, NotFoundError
from app.services.shared.http_client import HTTPClientError
from tests.helpers import money

USER_ID = "user-1"
CREATED = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)
ETH_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


def bearer(sub: str | None = USER_ID, **claims) -> dict[str, str]:
    payload = {**claims}
    if sub is not None:
        payload["sub"] = sub
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def snapshot(account_id="acc-1", snapshot_date=date(2024, 1, 10), **fields):
    return BalanceSnapshotWithConversion(
        id=fields.pop("id", "snap-1"),
        user_id=USER_ID,
        account_id=account_id,
        snapshot_date=snapshot_date,
        snapshot_type=BalanceSnapshotType.SYNC,
        current_balance=money("USD", 1000),
        available_balance=money("USD", 1000),
        created_at=CREATED,
        updated_at=CREATED,
        currency_date=snapshot_date,
        **fields,
    )


def balance_json(amount: int, currency: str = "USD") -> dict:
    return {"money": {"amount": amount, "currency": currency}, "sign": "positive"}


async def override_get_db():
    yield MagicMock()


@pytest.fixture
def client():
    limiter.reset()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def snapshot_service():
    service = MagicMock()
    for name in (
        "find_all_with_conversion",
        "find_by_account_id_with_conversion",
        "find_snapshots_for_date_with_conversion",
        "get_last_sync_times",
        "upsert",
        "remove",
    ):
        setattr(service, name, AsyncMock())
    app.dependency_overrides[get_balance_snapshot_service] = lambda: service
    return service


@pytest.fixture
def rate_service():
    service = MagicMock()
    service.get_rate = AsyncMock()
    service.get_rates_for_date_range = AsyncMock()
    app.dependency_overrides[get_exchange_rate_service] = lambda: service
    return service


@pytest.fixture
def sync_service():
    service = MagicMock()
    service.link_crypto_wallet = AsyncMock()
    app.dependency_overrides[get_account_sync_service] = lambda: service
    return service


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestAuthentication:
    def test_missing_token(self, client, snapshot_service):
        assert client.get("/api/balance-snapshots").status_code == 401

    def test_invalid_token(self, client, snapshot_service):
        response = client.get(
            "/api/balance-snapshots", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    def test_wrong_secret(self, client, snapshot_service):
        token = jwt.encode({"sub": USER_ID}, "other-secret", algorithm="HS256")
        response = client.get(
            "/api/balance-snapshots", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    def test_token_without_subject(self, client, snapshot_service):
        response = client.get("/api/balance-snapshots", headers=bearer(sub=None))
        assert response.status_code == 401


class TestBalanceSnapshotRoutes:
    def test_list_converted(self, client, snapshot_service):
        snapshot_service.find_all_with_conversion.return_value = [snapshot()]

        response = client.get("/api/balance-snapshots", headers=bearer())

        assert response.status_code == 200
        [body] = response.json()
        assert body["current_balance"] == {
            "money": {"amount": 1000, "currency": "USD"},
            "sign": "positive",
        }
        snapshot_service.find_all_with_conversion.assert_awaited_once_with(USER_ID)

    def test_account_history(self, client, snapshot_service):
        snapshot_service.find_by_account_id_with_conversion.return_value = []

        response = client.get("/api/balance-snapshots/account/acc-9", headers=bearer())

        assert response.status_code == 200
        snapshot_service.find_by_account_id_with_conversion.assert_awaited_once_with(
            "acc-9", USER_ID
        )

    def test_by_date_keyed_by_account(self, client, snapshot_service):
        snapshot_service.find_snapshots_for_date_with_conversion.return_value = {
            "acc-1": snapshot("acc-1")
        }

        response = client.get("/api/balance-snapshots/date/2024-01-10", headers=bearer())

        assert response.status_code == 200
        assert list(response.json()) == ["acc-1"]
        snapshot_service.find_snapshots_for_date_with_conversion.assert_awaited_once_with(
            USER_ID, date(2024, 1, 10)
        )

    def test_by_date_rejects_bad_date(self, client, snapshot_service):
        response = client.get("/api/balance-snapshots/date/yesterday", headers=bearer())
        assert response.status_code == 422

    def test_upsert_defaults_to_user_update_today(self, client, snapshot_service):
        saved = BalanceSnapshot.model_validate(snapshot().model_dump())
        snapshot_service.upsert.return_value = saved

        with (
            patch("app.routers.balance_snapshots.AccountRepository") as accounts,
            patch("app.routers.balance_snapshots.UserRepository") as users,
        ):
            accounts.return_value.find_by_id = AsyncMock(return_value=MagicMock())
            users.return_value.timezone_setting = AsyncMock(return_value="Asia/Tokyo")
            response = client.post(
                "/api/balance-snapshots",
                headers=bearer(),
                json={
                    "account_id": "acc-1",
                    "current_balance": balance_json(1000),
                    "available_balance": balance_json(1000),
                },
            )

        assert response.status_code == 200
        dto, user_id = snapshot_service.upsert.await_args.args
        assert user_id == USER_ID
        assert dto.snapshot_type == BalanceSnapshotType.USER_UPDATE
        assert dto.snapshot_date is not None

    def test_upsert_unknown_account(self, client, snapshot_service):
        with patch("app.routers.balance_snapshots.AccountRepository") as accounts:
            accounts.return_value.find_by_id = AsyncMock(return_value=None)
            response = client.post(
                "/api/balance-snapshots",
                headers=bearer(),
                json={
                    "account_id": "acc-x",
                    "snapshot_date": "2024-01-10",
                    "current_balance": balance_json(1),
                    "available_balance": balance_json(1),
                },
            )

        assert response.status_code == 404
        snapshot_service.upsert.assert_not_awaited()

    def test_slot_owned_by_other_user_is_conflict(self, client, snapshot_service):
        snapshot_service.upsert.side_effect = DuplicateError(
            "BalanceSnapshot", account_id="acc-1", snapshot_date=date(2024, 1, 10)
        )

        with patch("app.routers.balance_snapshots.AccountRepository") as accounts:
            accounts.return_value.find_by_id = AsyncMock(return_value=MagicMock())
            response = client.post(
                "/api/balance-snapshots",
                headers=bearer(),
                json={
                    "account_id": "acc-1",
                    "snapshot_date": "2024-01-10",
                    "current_balance": balance_json(1),
                    "available_balance": balance_json(1),
                },
            )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "Duplicate"
        assert body["path"] == "/api/balance-snapshots"

    def test_upstream_failure_is_bad_gateway(self, client, snapshot_service):
        snapshot_service.find_all_with_conversion.side_effect = HTTPClientError("timeout")

        response = client.get("/api/balance-snapshots", headers=bearer())

        assert response.status_code == 502
        assert response.json()["error"] == "UpstreamError"

    def test_delete(self, client, snapshot_service):
        snapshot_service.remove.return_value = True
        assert client.delete("/api/balance-snapshots/snap-1", headers=bearer()).status_code == 204

    def test_delete_missing(self, client, snapshot_service):
        snapshot_service.remove.return_value = False
        assert client.delete("/api/balance-snapshots/snap-1", headers=bearer()).status_code == 404


class TestExchangeRateRoutes:
    def test_get_rate(self, client, rate_service):
        rate_service.get_rate.return_value = RateQuote(
            base_currency="EUR",
            target_currency="USD",
            rate=Decimal("1.1"),
            rate_date=date(2024, 1, 10),
        )

        response = client.get(
            "/api/exchange-rates/EUR/USD", params={"rate_date": "2024-01-10"}, headers=bearer()
        )

        assert response.status_code == 200
        assert response.json()["rate_date"] == "2024-01-10"
        rate_service.get_rate.assert_awaited_once_with("EUR", "USD", date(2024, 1, 10))

    def test_rate_not_available(self, client, rate_service):
        rate_service.get_rate.return_value = None
        assert client.get("/api/exchange-rates/EUR/XYZ", headers=bearer()).status_code == 404

    def test_range(self, client, rate_service):
        rate_service.get_rates_for_date_range.return_value = [
            DailyExchangeRates(
                date=date(2024, 1, 1),
                rates=[
                    PairRate(
                        base_currency="EUR",
                        target_currency="USD",
                        rate=Decimal("1.1"),
                        source=RateSource.FILLED,
                    )
                ],
            )
        ]

        response = client.get(
            "/api/exchange-rates/range",
            params={"pairs": ["EUR:USD", "gbp:usd"], "start": "2024-01-01", "end": "2024-01-01"},
            headers=bearer(),
        )

        assert response.status_code == 200
        assert response.json()[0]["rates"][0]["source"] == "FILLED"
        pairs, start, end = rate_service.get_rates_for_date_range.await_args.args
        assert [(p.base_currency, p.target_currency) for p in pairs] == [
            ("EUR", "USD"),
            ("GBP", "USD"),
        ]

    def test_range_unknown_pair(self, client, rate_service):
        rate_service.get_rates_for_date_range.side_effect = NotFoundError("ExchangeRate", "EUR/USD")
        response = client.get(
            "/api/exchange-rates/range",
            params={"pairs": "EUR:USD", "start": "2024-01-01", "end": "2024-01-02"},
            headers=bearer(),
        )
        assert response.status_code == 404

    def test_range_malformed_pair(self, client, rate_service):
        response = client.get(
            "/api/exchange-rates/range",
            params={"pairs": "EURUSD", "start": "2024-01-01", "end": "2024-01-02"},
            headers=bearer(),
        )
        assert response.status_code == 400


class TestCryptoRoutes:
    def test_link_wallet(self, client, sync_service):
        sync_service.link_crypto_wallet.return_value = Account(
            id="acc-1",
            user_id=USER_ID,
            name="ETH wallet",
            account_type="crypto_wallet",
            provider_name="crypto",
            wallet_network="ethereum",
            wallet_address=ETH_ADDRESS,
            current_balance=money("ETH", 10**18),
            available_balance=money("ETH", 10**18),
            created_at=CREATED,
            updated_at=CREATED,
        )

        response = client.post(
            "/api/crypto/wallets",
            headers=bearer(),
            json={"network": "ethereum", "address": ETH_ADDRESS},
        )

        assert response.status_code == 201
        assert response.json()["current_balance"]["money"]["amount"] == 10**18
        sync_service.link_crypto_wallet.assert_awaited_once_with(
            USER_ID, "ethereum", ETH_ADDRESS, None
        )

    def test_invalid_address(self, client, sync_service):
        sync_service.link_crypto_wallet.side_effect = InvalidWalletAddressError(
            "Invalid ethereum address format"
        )
        response = client.post(
            "/api/crypto/wallets",
            headers=bearer(),
            json={"network": "ethereum", "address": "0x" + "z" * 40},
        )
        assert response.status_code == 400

    def test_unsupported_network(self, client, sync_service):
        response = client.post(
            "/api/crypto/wallets",
            headers=bearer(),
            json={"network": "solana", "address": ETH_ADDRESS},
        )
        assert response.status_code == 422

    def test_balance_source_down(self, client, sync_service):
        sync_service.link_crypto_wallet.side_effect = CryptoBalanceError(
            "all down", "ethereum", ETH_ADDRESS
        )
        response = client.post(
            "/api/crypto/wallets",
            headers=bearer(),
            json={"network": "ethereum", "address": ETH_ADDRESS},
        )
        assert response.status_code == 502


class TestJobRoutes:
    @pytest.fixture
    def registry(self):
        registry = TaskRegistry()
        registry.register(
            RecurringTask(
                "forward_fill_balance_snapshots",
                "0 */6 * * *",
                "UTC",
                AsyncMock(return_value=ForwardFillResult(created=2, skipped=1)),
            )
        )
        app.dependency_overrides[get_task_registry] = lambda: registry
        return registry

    def test_requires_service_token(self, client, registry):
        response = client.post("/api/jobs/forward_fill_balance_snapshots", headers=bearer())
        assert response.status_code == 403

    def test_run_job(self, client, registry):
        response = client.post(
            "/api/jobs/forward_fill_balance_snapshots", headers=bearer(service=True)
        )

        assert response.status_code == 200
        assert response.json() == {
            "name": "forward_fill_balance_snapshots",
            "status": "completed",
            "result": {"created": 2, "skipped": 1},
        }

    def test_unknown_job(self, client, registry):
        response = client.post("/api/jobs/nope", headers=bearer(service=True))
        assert response.status_code == 404

    def test_list_jobs(self, client, registry):
        response = client.get("/api/jobs", headers=bearer(service=True))
        assert response.json() == [
            {"name": "forward_fill_balance_snapshots", "cron": "0 */6 * * *", "timezone": "UTC"}
        ]
