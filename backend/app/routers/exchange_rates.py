"""Exchange rates API router."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_exchange_rate_service
from app.schemas.exchange_rate import CurrencyPair, DailyExchangeRates, RateQuote
from app.services.market_data import ExchangeRateService
from app.services.repositories import NotFoundError

router = APIRouter(prefix="/api/exchange-rates", tags=["exchange-rates"])


@router.get("/range", response_model=list[DailyExchangeRates])
async def get_rates_for_range(
    pairs: list[str] = Query(..., description="Currency pairs, e.g. EUR:USD"),
    start: date = Query(...),
    end: date = Query(...),
    _user_id: str = Depends(get_current_user_id),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
) -> list[DailyExchangeRates]:
    """
    Daily rates for several pairs over a date range.

    Days without a stored rate carry the neighbouring rate with source
    ``FILLED``.
    """
    try:
        parsed = [CurrencyPair.parse(pair) for pair in pairs]
        return await service.get_rates_for_date_range(parsed, start, end)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/{base_currency}/{target_currency}", response_model=RateQuote)
async def get_rate(
    base_currency: str,
    target_currency: str,
    rate_date: date | None = None,
    _user_id: str = Depends(get_current_user_id),
    service: ExchangeRateService = Depends(get_exchange_rate_service),
) -> RateQuote:
    """Rate for ``1 base = rate target`` on a day (latest when no date given)."""
    quote = await service.get_rate(base_currency, target_currency, rate_date)
    if quote is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No exchange rate for {base_currency.upper()}/{target_currency.upper()}",
        )
    return quote
