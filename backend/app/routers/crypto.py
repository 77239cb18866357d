"""Crypto wallets API router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_account_sync_service
from app.rate_limiter import WALLET_LINK_LIMIT, limiter
from app.schemas.account import Account, CryptoWalletLink
from app.services.account_sync_service import AccountSyncService, InvalidWalletAddressError
from app.services.crypto_balance_service import CryptoBalanceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crypto", tags=["crypto"])


@router.post("/wallets", response_model=Account, status_code=status.HTTP_201_CREATED)
@limiter.limit(WALLET_LINK_LIMIT)
async def link_wallet(
    request: Request,
    data: CryptoWalletLink,
    user_id: str = Depends(get_current_user_id),
    service: AccountSyncService = Depends(get_account_sync_service),
) -> Account:
    """Link a wallet by address; its current on-chain balance is read immediately."""
    try:
        return await service.link_crypto_wallet(user_id, data.network, data.address, data.name)
    except InvalidWalletAddressError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except CryptoBalanceError as e:
        logger.warning(f"Could not read wallet balance: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not read wallet balance, try again later",
        ) from e
