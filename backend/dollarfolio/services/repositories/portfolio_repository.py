"""Portfolio data access layer."""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from dollarfolio.models import Portfolio

from .exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence


class PortfolioRepository:
    """Portfolio queries, always scoped to an owning user."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_for_user(self, portfolio_id: str, user_id: str) -> Portfolio | None:
        """Find a portfolio if it belongs to the user."""
        return (
            self._db.query(Portfolio)
            .filter(Portfolio.id == portfolio_id, Portfolio.user_id == user_id)
            .first()
        )

    def get_for_user(self, portfolio_id: str, user_id: str) -> Portfolio:
        """Get a portfolio owned by the user or raise NotFoundError."""
        portfolio = self.find_for_user(portfolio_id, user_id)
        if portfolio is None:
            raise NotFoundError("Portfolio", portfolio_id)
        return portfolio

    def list_for_user(self, user_id: str) -> "Sequence[Portfolio]":
        """List the user's portfolios, default first then oldest first."""
        return (
            self._db.query(Portfolio)
            .filter(Portfolio.user_id == user_id)
            .order_by(Portfolio.is_default.desc(), Portfolio.created_at)
            .all()
        )

    def count_for_user(self, user_id: str) -> int:
        return self._db.query(Portfolio).filter(Portfolio.user_id == user_id).count()

    def find_for_broker_account(self, broker_account_id: str, currency: str) -> Portfolio | None:
        """Find the portfolio that receives a broker account's orders in a currency."""
        return (
            self._db.query(Portfolio)
            .filter(
                Portfolio.broker_account_id == broker_account_id,
                Portfolio.currency == currency,
            )
            .order_by(Portfolio.created_at)
            .first()
        )

    def clear_default(self, user_id: str, except_id: str) -> None:
        """Unset the default flag on every other portfolio of the user."""
        (
            self._db.query(Portfolio)
            .filter(Portfolio.user_id == user_id, Portfolio.id != except_id)
            .update({Portfolio.is_default: False}, synchronize_session="fetch")
        )
