"""Transaction data access layer."""

from typing import TYPE_CHECKING

from sqlalchemy import desc
from sqlalchemy.orm import Session

from dollarfolio.models import Transaction

from .exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence


class TransactionRepository:
    """Transaction queries."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_for_user(self, transaction_id: str, user_id: str) -> Transaction:
        """Get a transaction owned by the user or raise NotFoundError."""
        transaction = (
            self._db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def list_for_portfolio_chronological(self, portfolio_id: str) -> "Sequence[Transaction]":
        """All transactions of a portfolio in ascending trade time."""
        return (
            self._db.query(Transaction)
            .filter(Transaction.portfolio_id == portfolio_id)
            .order_by(Transaction.traded_at, Transaction.created_at)
            .all()
        )

    def list_for_user(
        self,
        user_id: str,
        portfolio_id: str | None = None,
        transaction_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple["Sequence[Transaction]", int]:
        """Page through a user's transactions, newest first.

        Returns:
            Tuple of (page of transactions, total matching count)
        """
        query = self._db.query(Transaction).filter(Transaction.user_id == user_id)
        if portfolio_id:
            query = query.filter(Transaction.portfolio_id == portfolio_id)
        if transaction_type:
            query = query.filter(Transaction.type == transaction_type)

        total = query.count()
        items = (
            query.order_by(desc(Transaction.traded_at), desc(Transaction.created_at))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def list_recent_for_portfolio(self, portfolio_id: str, limit: int = 10) -> "Sequence[Transaction]":
        return (
            self._db.query(Transaction)
            .filter(Transaction.portfolio_id == portfolio_id)
            .order_by(desc(Transaction.traded_at))
            .limit(limit)
            .all()
        )

    def count_for_portfolio(self, portfolio_id: str) -> int:
        return self._db.query(Transaction).filter(Transaction.portfolio_id == portfolio_id).count()

    def exists_for_broker_order(self, broker_account_id: str, broker_order_id: str) -> bool:
        """Check whether a broker order has already been synced for the account."""
        return (
            self._db.query(Transaction.id)
            .filter(
                Transaction.broker_account_id == broker_account_id,
                Transaction.broker_order_id == broker_order_id,
            )
            .first()
            is not None
        )
