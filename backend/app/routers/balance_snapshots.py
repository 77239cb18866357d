"""Balance snapshots API router - daily account balance history."""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_balance_snapshot_service
from app.schemas.balance_snapshot import (
    BalanceSnapshot,
    BalanceSnapshotUpsert,
    BalanceSnapshotWithConversion,
)
from app.services.balance_snapshot_service import BalanceSnapshotService
from app.services.repositories import AccountRepository, UserRepository
from app.services.shared.timezone_utils import local_today

router = APIRouter(prefix="/api/balance-snapshots", tags=["balance-snapshots"])


@router.get("", response_model=list[BalanceSnapshotWithConversion])
async def list_snapshots(
    user_id: str = Depends(get_current_user_id),
    service: BalanceSnapshotService = Depends(get_balance_snapshot_service),
) -> list[BalanceSnapshotWithConversion]:
    """All snapshots of the user, converted to their display currency."""
    return await service.find_all_with_conversion(user_id)


@router.get("/account/{account_id}", response_model=list[BalanceSnapshotWithConversion])
async def get_account_snapshots(
    account_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BalanceSnapshotService = Depends(get_balance_snapshot_service),
) -> list[BalanceSnapshotWithConversion]:
    """Snapshot history of one account, newest first."""
    return await service.find_by_account_id_with_conversion(account_id, user_id)


@router.get("/date/{snapshot_date}", response_model=dict[str, BalanceSnapshotWithConversion])
async def get_snapshots_for_date(
    snapshot_date: date,
    user_id: str = Depends(get_current_user_id),
    service: BalanceSnapshotService = Depends(get_balance_snapshot_service),
) -> dict[str, BalanceSnapshotWithConversion]:
    """Snapshots of every account on one day, keyed by account id."""
    return await service.find_snapshots_for_date_with_conversion(user_id, snapshot_date)


@router.get("/last-sync", response_model=dict[str, datetime])
async def get_last_sync_times(
    account_id: str | None = None,
    user_id: str = Depends(get_current_user_id),
    service: BalanceSnapshotService = Depends(get_balance_snapshot_service),
) -> dict[str, datetime]:
    """When each account was last synced from its provider."""
    return await service.get_last_sync_times(user_id, account_id)


@router.post("", response_model=BalanceSnapshot)
async def upsert_snapshot(
    data: BalanceSnapshotUpsert,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BalanceSnapshotService = Depends(get_balance_snapshot_service),
) -> BalanceSnapshot:
    """
    Record the balance of an account for a day, replacing any existing entry.

    The day defaults to today in the user's timezone and the type to
    ``user_update``.
    """
    if await AccountRepository(db).find_by_id(data.account_id, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account {data.account_id} not found",
        )

    if data.snapshot_date is None:
        timezone_name = await UserRepository(db).timezone_setting(user_id)
        data = data.model_copy(update={"snapshot_date": local_today(timezone_name)})

    return await service.upsert(data, user_id)


@router.delete("/{snapshot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_snapshot(
    snapshot_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BalanceSnapshotService = Depends(get_balance_snapshot_service),
) -> None:
    """Delete a snapshot."""
    if not await service.remove(snapshot_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Balance snapshot {snapshot_id} not found",
        )
