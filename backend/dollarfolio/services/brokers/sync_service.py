"""Synchronise broker orders into the local ledger.

Written once against BrokerClient; every broker goes through the same path.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dollarfolio.config import settings
from dollarfolio.models import BrokerAccount, Portfolio
from dollarfolio.services.brokers.base import BrokerAPIError, BrokerBalance, BrokerClient, BrokerOrder
from dollarfolio.services.exceptions import InsufficientBalanceError, LedgerValidationError
from dollarfolio.services.portfolio.ledger_service import PortfolioLedgerService
from dollarfolio.services.repositories import PortfolioRepository, TransactionRepository

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync run.

    Orders and balance are fetched independently: errors holds a message
    for each part that failed while the other may still have succeeded.
    """

    synced_count: int = 0
    skipped_count: int = 0
    total_orders: int = 0
    balance_synced: bool = False
    balances: list[BrokerBalance] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    message: str = ""


class BrokerSyncService:
    """Imports filled broker orders as synced transactions.

    Each order is committed on its own together with its ledger update.
    An order already stored for the account is skipped; the unique
    constraint on (broker_account_id, broker_order_id) catches any race
    between the existence check and the insert.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] | None = None):
        self.db = db
        self._clock = clock or (lambda: datetime.now(UTC))
        self.ledger = PortfolioLedgerService(db)
        self.portfolios = PortfolioRepository(db)
        self.transactions = TransactionRepository(db)

    def sync(
        self,
        account: BrokerAccount,
        client: BrokerClient,
        start: date | None = None,
        end: date | None = None,
    ) -> SyncResult:
        """Sync orders in [start, end] and fetch the broker balance.

        Args:
            account: Broker account owning the orders
            client: Client for the account's broker
            start: First trade date (defaults to end minus the lookback window)
            end: Last trade date (defaults to today)

        Returns:
            SyncResult with counts and any partial failures
        """
        end = end or self._clock().date()
        start = start or end - timedelta(days=settings.broker_sync_lookback_days)
        result = SyncResult()

        try:
            orders = client.list_orders(start, end)
        except BrokerAPIError as e:
            logger.warning(f"Order fetch failed for broker account {account.id}: {e}")
            result.errors.append(f"Order sync failed: {e}")
        else:
            result.total_orders = len(orders)
            self._sync_orders(account, orders, result)

        try:
            result.balances = client.get_balance()
            result.balance_synced = True
            self._reconcile(account, result.balances)
        except BrokerAPIError as e:
            logger.warning(f"Balance fetch failed for broker account {account.id}: {e}")
            result.errors.append(f"Balance sync failed: {e}")

        account.last_sync_at = self._clock()
        self.db.add(account)
        self.db.commit()

        result.message = f"{result.synced_count} transaction(s) synced"
        if result.skipped_count:
            result.message += f", {result.skipped_count} skipped"

        logger.info(
            f"Synced broker account {account.id}: {result.synced_count} new, "
            f"{result.skipped_count} skipped, {len(result.errors)} error(s)"
        )
        return result

    def _sync_orders(self, account: BrokerAccount, orders: list[BrokerOrder], result: SyncResult) -> None:
        for order in sorted(orders, key=lambda o: o.ordered_at):
            if self.transactions.exists_for_broker_order(account.id, order.order_id):
                result.skipped_count += 1
                continue

            portfolio = self.get_or_create_portfolio(account, order.currency)
            try:
                self.ledger.record_transaction(
                    portfolio,
                    order.type,
                    order.amount,
                    order.rate,
                    order.fee,
                    traded_at=order.ordered_at,
                    is_manual=False,
                    broker_account_id=account.id,
                    broker_order_id=order.order_id,
                )
            except IntegrityError:
                logger.info(f"Order {order.order_id} was synced concurrently, skipping")
                result.skipped_count += 1
            except (InsufficientBalanceError, LedgerValidationError) as e:
                logger.warning(f"Skipping order {order.order_id}: {e}")
                result.skipped_count += 1
                result.errors.append(f"Order {order.order_id} skipped: {e}")
            else:
                result.synced_count += 1

    def get_or_create_portfolio(self, account: BrokerAccount, currency: str) -> Portfolio:
        """Portfolio that receives the account's orders in a currency, created on first use."""
        portfolio = self.portfolios.find_for_broker_account(account.id, currency)
        if portfolio is not None:
            return portfolio

        alias = account.account_alias or account.broker
        portfolio = Portfolio(
            user_id=account.user_id,
            broker_account_id=account.id,
            name=f"{alias} {currency}"[:50],
            currency=currency,
            description=f"Synced from {account.broker}",
            is_default=self.portfolios.count_for_user(account.user_id) == 0,
        )
        self.db.add(portfolio)
        self.db.commit()
        self.db.refresh(portfolio)
        logger.info(f"Created portfolio {portfolio.id} for broker account {account.id} ({currency})")
        return portfolio

    def _reconcile(self, account: BrokerAccount, balances: list[BrokerBalance]) -> None:
        """Compare broker balances with the ledger. The ledger is never overwritten."""
        for balance in balances:
            portfolio = self.portfolios.find_for_broker_account(account.id, balance.currency)
            if portfolio is None:
                continue
            if portfolio.current_balance != balance.balance:
                logger.warning(
                    f"Balance mismatch for portfolio {portfolio.id}: ledger "
                    f"{portfolio.current_balance} {balance.currency}, broker {balance.balance}"
                )
