"""Persist ledger changes atomically with the transactions that cause them."""

import logging
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dollarfolio.models import Portfolio, Transaction
from dollarfolio.services.exceptions import BusinessRuleError, InsufficientBalanceError
from dollarfolio.services.repositories import TransactionRepository

from .ledger import LedgerState, apply_transaction, replay, validate_figures

logger = logging.getLogger(__name__)


class PortfolioLedgerService:
    """Records and deletes transactions, keeping the portfolio figures in step.

    Each public method is one database transaction: the transaction row and
    the portfolio update are committed together or not at all.
    """

    def __init__(self, db: Session):
        self.db = db
        self.transactions = TransactionRepository(db)

    def record_transaction(
        self,
        portfolio: Portfolio,
        transaction_type: str,
        amount: Decimal,
        rate: Decimal,
        fee: Decimal = Decimal("0"),
        memo: str | None = None,
        traded_at: datetime | None = None,
        *,
        is_manual: bool = True,
        broker_account_id: str | None = None,
        broker_order_id: str | None = None,
    ) -> Transaction:
        """Insert a transaction and apply it incrementally to the portfolio.

        Raises:
            LedgerValidationError: If amount, rate or fee is out of range
            InsufficientBalanceError: If a SELL exceeds the balance (nothing is written)
            SQLAlchemyError: If the commit fails (rolled back), including a
                duplicate broker order
        """
        validate_figures(amount, rate, fee)
        new_state = apply_transaction(LedgerState.of(portfolio), transaction_type, amount, rate, fee)

        now = datetime.now(UTC)
        transaction = Transaction(
            user_id=portfolio.user_id,
            portfolio_id=portfolio.id,
            broker_account_id=broker_account_id,
            type=transaction_type,
            currency=portfolio.currency,
            amount=amount,
            rate=rate,
            krw_amount=amount * rate + fee,
            fee=fee,
            memo=memo,
            is_manual=is_manual,
            broker_order_id=broker_order_id,
            traded_at=traded_at or now,
            synced_at=None if is_manual else now,
        )

        try:
            self.db.add(transaction)
            self._apply_state(portfolio, new_state)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(transaction)
        logger.info(
            f"Recorded {transaction_type} {amount} {portfolio.currency} @ {rate} "
            f"in portfolio {portfolio.id}"
        )
        return transaction

    def delete_transaction(self, transaction: Transaction) -> LedgerState:
        """Delete a manual transaction and rebuild the portfolio from the rest.

        Raises:
            BusinessRuleError: If the transaction was synced from a broker
            InsufficientBalanceError: If the remaining history would sell more
                than it holds (nothing is deleted)
        """
        if not transaction.is_manual:
            raise BusinessRuleError("Synced transactions cannot be deleted")

        portfolio = transaction.portfolio
        try:
            self.db.delete(transaction)
            self.db.flush()
            state = self.recompute(portfolio)
            self.db.commit()
        except (InsufficientBalanceError, SQLAlchemyError):
            self.db.rollback()
            raise

        logger.info(f"Deleted transaction {transaction.id} from portfolio {portfolio.id}")
        return state

    def recompute(self, portfolio: Portfolio) -> LedgerState:
        """Replay every stored transaction of the portfolio. Does not commit."""
        entries = self.transactions.list_for_portfolio_chronological(portfolio.id)
        state = replay(entries)
        self._apply_state(portfolio, state)
        return state

    def _apply_state(self, portfolio: Portfolio, state: LedgerState) -> None:
        portfolio.current_balance = state.balance
        portfolio.avg_buy_rate = state.avg_buy_rate
        portfolio.total_invested = state.total_invested
        self.db.add(portfolio)
