"""Exchange rates API router."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from dollarfolio.database import get_db
from dollarfolio.dependencies.services import get_exchange_rate_service
from dollarfolio.schemas.exchange_rate import RateHistoryResponse, RateQuote, RatesResponse
from dollarfolio.services.market_data import ExchangeRateService

router = APIRouter(prefix="/api/exchange", tags=["exchange"])


@router.get("/rates", response_model=RatesResponse | RateQuote)
def get_rates(
    currency: str | None = Query(None, min_length=3, max_length=3),
    db: Session = Depends(get_db),
    rate_service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    """
    Get current KRW exchange rates.

    With ?currency=XXX returns that single quote. Always answers: when every
    live source is down, the last stored or default rates are served.
    """
    if currency:
        quote = rate_service.get_rate(db, currency.upper())
        if quote is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Currency {currency.upper()} not found",
            )
        return RateQuote.model_validate(quote)

    return RatesResponse(
        rates=[RateQuote.model_validate(q) for q in rate_service.get_rates(db)],
        updated_at=datetime.now(UTC),
    )


@router.get("/history", response_model=RateHistoryResponse)
async def get_history(
    currency: str = Query("USD", min_length=3, max_length=3),
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    rate_service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    """Get daily rate history for a currency (last snapshot of each day)."""
    currency = currency.upper()
    return RateHistoryResponse(
        currency=currency,
        days=days,
        history=rate_service.get_history(db, currency, days),
    )
