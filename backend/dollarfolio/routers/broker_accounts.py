"""Broker accounts API router."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dollarfolio.database import get_db
from dollarfolio.dependencies.auth import get_current_user
from dollarfolio.models import User
from dollarfolio.schemas.broker import BrokerAccount as BrokerAccountSchema
from dollarfolio.services.brokers.account_service import BrokerAccountService
from dollarfolio.services.repositories import BrokerAccountRepository, NotFoundError

router = APIRouter(prefix="/api/broker-accounts", tags=["broker-accounts"])


@router.get("", response_model=list[BrokerAccountSchema])
async def list_broker_accounts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the current user's active broker accounts, newest first."""
    return BrokerAccountRepository(db).list_active_for_user(current_user.id)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_broker_account(
    account_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Unlink a broker account. Portfolios and synced transactions are kept."""
    try:
        account = BrokerAccountRepository(db).get_for_user(account_id, current_user.id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Broker account with id {account_id} not found",
        )

    BrokerAccountService.deactivate(db, account)
