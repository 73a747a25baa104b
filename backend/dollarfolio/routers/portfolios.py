"""Portfolios API router."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from dollarfolio.constants import BrokerType
from dollarfolio.database import get_db
from dollarfolio.dependencies.auth import get_current_user
from dollarfolio.dependencies.services import get_exchange_rate_service
from dollarfolio.models import Portfolio, User
from dollarfolio.schemas.portfolio import Portfolio as PortfolioSchema
from dollarfolio.schemas.portfolio import (
    PortfolioCreate,
    PortfolioDetail,
    PortfolioSummary,
    PortfolioUpdate,
)
from dollarfolio.schemas.transaction import Transaction as TransactionSchema
from dollarfolio.services.market_data import ExchangeRateService
from dollarfolio.services.portfolio import value_portfolio
from dollarfolio.services.repositories import (
    BrokerAccountRepository,
    NotFoundError,
    PortfolioRepository,
    TransactionRepository,
)

router = APIRouter(prefix="/api/portfolios", tags=["portfolios"])


def _summarize(
    db: Session, portfolio: Portfolio, rates: dict | None = None
) -> dict:
    """Portfolio fields plus broker info, transaction count and optional valuation."""
    summary = PortfolioSchema.model_validate(portfolio).model_dump()
    summary["broker"] = (
        portfolio.broker_account.broker if portfolio.broker_account else BrokerType.MANUAL
    )
    summary["account_alias"] = (
        portfolio.broker_account.account_alias if portfolio.broker_account else None
    )
    summary["transaction_count"] = TransactionRepository(db).count_for_portfolio(portfolio.id)

    if rates and portfolio.currency in rates:
        summary.update(value_portfolio(portfolio, rates[portfolio.currency]))
    return summary


def _current_rates(db: Session, rate_service: ExchangeRateService) -> dict:
    return {quote.currency: quote.rate for quote in rate_service.get_rates(db)}


@router.get("", response_model=list[PortfolioSummary])
def list_portfolios(
    include_values: bool = Query(False, description="Value portfolios at the current rate"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    rate_service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    """
    Get the current user's portfolios, default first then oldest first.
    """
    rates = _current_rates(db, rate_service) if include_values else None
    portfolios = PortfolioRepository(db).list_for_user(current_user.id)
    return [PortfolioSummary(**_summarize(db, p, rates)) for p in portfolios]


@router.post("", response_model=PortfolioSchema, status_code=status.HTTP_201_CREATED)
async def create_portfolio(
    portfolio: PortfolioCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a portfolio. The user's first portfolio becomes the default."""
    if portfolio.broker_account_id:
        try:
            BrokerAccountRepository(db).get_for_user(portfolio.broker_account_id, current_user.id)
        except NotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Broker account not found",
            )

    repo = PortfolioRepository(db)
    db_portfolio = Portfolio(
        user_id=current_user.id,
        name=portfolio.name,
        currency=portfolio.currency.upper(),
        description=portfolio.description,
        broker_account_id=portfolio.broker_account_id,
        is_default=repo.count_for_user(current_user.id) == 0,
    )
    db.add(db_portfolio)
    db.commit()
    db.refresh(db_portfolio)
    return db_portfolio


@router.get("/{portfolio_id}", response_model=PortfolioDetail)
def get_portfolio(
    portfolio_id: str,
    include_values: bool = Query(False, description="Value the portfolio at the current rate"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    rate_service: ExchangeRateService = Depends(get_exchange_rate_service),
):
    """Get a portfolio (must belong to user) with its 10 most recent transactions."""
    try:
        portfolio = PortfolioRepository(db).get_for_user(portfolio_id, current_user.id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Portfolio with id {portfolio_id} not found",
        )

    rates = _current_rates(db, rate_service) if include_values else None
    recent = TransactionRepository(db).list_recent_for_portfolio(portfolio.id)
    return PortfolioDetail(
        **_summarize(db, portfolio, rates),
        recent_transactions=[TransactionSchema.model_validate(t) for t in recent],
    )


@router.patch("/{portfolio_id}", response_model=PortfolioSchema)
async def update_portfolio(
    portfolio_id: str,
    portfolio_update: PortfolioUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Rename, describe, or make default. Making one default clears the others."""
    repo = PortfolioRepository(db)
    try:
        db_portfolio = repo.get_for_user(portfolio_id, current_user.id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Portfolio with id {portfolio_id} not found",
        )

    update_data = portfolio_update.model_dump(exclude_unset=True)
    if update_data.get("is_default") is True:
        repo.clear_default(current_user.id, except_id=db_portfolio.id)

    for field, value in update_data.items():
        if value is None and field != "description":
            continue
        setattr(db_portfolio, field, value)

    db.commit()
    db.refresh(db_portfolio)
    return db_portfolio


@router.delete("/{portfolio_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_portfolio(
    portfolio_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a portfolio and its transactions. The default portfolio cannot be deleted."""
    try:
        db_portfolio = PortfolioRepository(db).get_for_user(portfolio_id, current_user.id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Portfolio with id {portfolio_id} not found",
        )

    if db_portfolio.is_default:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The default portfolio cannot be deleted",
        )

    db.delete(db_portfolio)
    db.commit()
