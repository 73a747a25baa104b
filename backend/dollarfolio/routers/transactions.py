"""Transactions API router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dollarfolio.database import get_db
from dollarfolio.dependencies.auth import get_current_user
from dollarfolio.models import User
from dollarfolio.schemas.common import PaginatedResponse
from dollarfolio.schemas.transaction import Transaction as TransactionSchema
from dollarfolio.schemas.transaction import TransactionCreate, TransactionCreated
from dollarfolio.services.exceptions import (
    BusinessRuleError,
    InsufficientBalanceError,
    LedgerValidationError,
)
from dollarfolio.services.portfolio import PortfolioLedgerService
from dollarfolio.services.repositories import (
    NotFoundError,
    PortfolioRepository,
    TransactionRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("", response_model=PaginatedResponse[TransactionSchema])
async def list_transactions(
    portfolio_id: str | None = Query(None, description="Filter by portfolio"),
    type: str | None = Query(None, pattern="^(BUY|SELL)$", description="Filter by BUY or SELL"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get the current user's transactions, newest first.
    """
    items, total = TransactionRepository(db).list_for_user(
        current_user.id,
        portfolio_id=portfolio_id,
        transaction_type=type,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse[TransactionSchema](
        items=[TransactionSchema.model_validate(t) for t in items],
        total=total,
        skip=offset,
        limit=limit,
        has_more=offset + len(items) < total,
    )


@router.post("", response_model=TransactionCreated, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Record a manual BUY or SELL and update the portfolio in the same commit."""
    try:
        portfolio = PortfolioRepository(db).get_for_user(data.portfolio_id, current_user.id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Portfolio with id {data.portfolio_id} not found",
        )

    try:
        transaction = PortfolioLedgerService(db).record_transaction(
            portfolio,
            data.type,
            data.amount,
            data.rate,
            data.fee,
            memo=data.memo,
            traded_at=data.traded_at,
        )
    except InsufficientBalanceError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Insufficient balance",
        )
    except LedgerValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError:
        logger.exception(f"Failed to record transaction in portfolio {portfolio.id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record transaction",
        )

    db.refresh(portfolio)
    return TransactionCreated(
        transaction=TransactionSchema.model_validate(transaction),
        current_balance=portfolio.current_balance,
        avg_buy_rate=portfolio.avg_buy_rate,
        total_invested=portfolio.total_invested,
    )


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a manual transaction and recompute its portfolio from the remaining history."""
    try:
        transaction = TransactionRepository(db).get_for_user(transaction_id, current_user.id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction with id {transaction_id} not found",
        )

    try:
        PortfolioLedgerService(db).delete_transaction(transaction)
    except InsufficientBalanceError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Deleting this transaction would leave a sell without enough balance",
        )
    except BusinessRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError:
        logger.exception(f"Failed to delete transaction {transaction_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete transaction",
        )
