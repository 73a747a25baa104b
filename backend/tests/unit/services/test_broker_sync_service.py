"""Tests for BrokerSyncService."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from dollarfolio.models import BrokerAccount, Portfolio, Transaction
from dollarfolio.services.brokers import (
    BrokerAPIError,
    BrokerBalance,
    BrokerClient,
    BrokerOrder,
)
from dollarfolio.services.brokers.hana import HanaBridgeClient
from dollarfolio.services.brokers.sync_service import BrokerSyncService

NOW = datetime(2024, 6, 3, 12, 0, tzinfo=UTC)


class FakeBroker(BrokerClient):
    """In-memory broker returning canned orders and balances."""

    broker = "HANA"

    def __init__(self, orders=None, balances=None, orders_error=None, balance_error=None):
        self.orders = orders or []
        self.balances = balances or []
        self.orders_error = orders_error
        self.balance_error = balance_error
        self.requested_ranges: list[tuple[date, date]] = []

    def connect(self) -> None:
        pass

    def get_balance(self) -> list[BrokerBalance]:
        if self.balance_error:
            raise BrokerAPIError(self.balance_error, self.broker)
        return self.balances

    def list_orders(self, start: date, end: date) -> list[BrokerOrder]:
        self.requested_ranges.append((start, end))
        if self.orders_error:
            raise BrokerAPIError(self.orders_error, self.broker)
        return self.orders


def _order(order_id: str, type: str, amount: str, rate: str, days: int) -> BrokerOrder:
    return BrokerOrder(
        order_id=order_id,
        type=type,
        currency="USD",
        amount=Decimal(amount),
        rate=Decimal(rate),
        ordered_at=NOW - timedelta(days=days),
    )


@pytest.fixture
def account(db, test_user) -> BrokerAccount:
    account = BrokerAccount(
        user_id=test_user.id,
        broker="HANA",
        account_no="123-456789-01",
        account_alias="Hana 8901",
        is_active=True,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def service(db) -> BrokerSyncService:
    return BrokerSyncService(db, clock=lambda: NOW)


def _synced(db, account) -> list[Transaction]:
    return (
        db.query(Transaction)
        .filter(Transaction.broker_account_id == account.id)
        .order_by(Transaction.traded_at)
        .all()
    )


class TestSyncOrders:
    """Importing filled orders into the ledger."""

    def test_orders_become_synced_transactions(self, db, service, account):
        broker = FakeBroker(
            orders=[
                _order("B-2", "SELL", "50", "1450", days=1),
                _order("B-1", "BUY", "100", "1300", days=3),
            ]
        )

        result = service.sync(account, broker)

        assert result.synced_count == 2
        assert result.skipped_count == 0
        assert result.total_orders == 2
        assert result.message == "2 transaction(s) synced"
        transactions = _synced(db, account)
        assert [t.broker_order_id for t in transactions] == ["B-1", "B-2"]
        assert all(t.is_manual is False for t in transactions)
        portfolio = transactions[0].portfolio
        assert portfolio.current_balance == Decimal("50")
        assert portfolio.avg_buy_rate == Decimal("1300")

    def test_creates_portfolio_for_account_currency(self, db, service, account):
        service.sync(account, FakeBroker(orders=[_order("B-1", "BUY", "10", "1300", days=1)]))

        portfolio = db.query(Portfolio).filter(Portfolio.broker_account_id == account.id).one()
        assert portfolio.name == "Hana 8901 USD"
        assert portfolio.currency == "USD"
        assert portfolio.is_default is True

    def test_resync_skips_existing_orders(self, db, service, account):
        broker = FakeBroker(orders=[_order("B-1", "BUY", "100", "1300", days=2)])
        service.sync(account, broker)

        broker.orders.append(_order("B-3", "BUY", "20", "1400", days=1))
        result = service.sync(account, broker)

        assert result.synced_count == 1
        assert result.skipped_count == 1
        assert result.message == "1 transaction(s) synced, 1 skipped"
        assert len(_synced(db, account)) == 2

    def test_concurrent_duplicate_is_skipped(self, db, service, account, monkeypatch):
        broker = FakeBroker(orders=[_order("B-1", "BUY", "100", "1300", days=2)])
        service.sync(account, broker)

        # Another sync stored the order between the existence check and the insert
        monkeypatch.setattr(service.transactions, "exists_for_broker_order", lambda *args: False)
        result = service.sync(account, broker)

        assert result.synced_count == 0
        assert result.skipped_count == 1
        assert result.errors == []
        portfolio = db.query(Portfolio).filter(Portfolio.broker_account_id == account.id).one()
        db.refresh(portfolio)
        assert portfolio.current_balance == Decimal("100")

    def test_oversell_is_skipped_with_error(self, db, service, account):
        broker = FakeBroker(
            orders=[
                _order("B-1", "BUY", "10", "1300", days=2),
                _order("B-2", "SELL", "20", "1350", days=1),
            ]
        )

        result = service.sync(account, broker)

        assert result.synced_count == 1
        assert result.skipped_count == 1
        assert any("B-2" in error for error in result.errors)
        assert [t.broker_order_id for t in _synced(db, account)] == ["B-1"]

    def test_non_finite_order_is_skipped_with_error(self, db, service, account):
        broker = FakeBroker(
            orders=[
                _order("B-1", "BUY", "NaN", "1300", days=2),
                _order("B-2", "BUY", "10", "1300", days=1),
            ]
        )

        result = service.sync(account, broker)

        assert result.synced_count == 1
        assert result.skipped_count == 1
        assert any("B-1" in error for error in result.errors)
        assert [t.broker_order_id for t in _synced(db, account)] == ["B-2"]

    def test_bad_hana_order_does_not_abort_sync(self, db, service, account):
        def handler(request):
            if request.url.path == "/api/hana/orders":
                orders = [{"orderId": "H-1", "type": "BUY", "amount": "NaN", "rate": 1300, "orderedAt": "2024-06-01T10:00:00"}]
                return httpx.Response(200, json={"success": True, "orders": orders})
            return httpx.Response(200, json={"success": True, "balances": [{"currency": "USD", "balance": 0}]})

        client = HanaBridgeClient(
            account_no=account.account_no,
            base_url="http://bridge.test",
            transport=httpx.MockTransport(handler),
        )

        result = service.sync(account, client)

        assert result.synced_count == 0
        assert result.balance_synced is True
        db.refresh(account)
        assert account.last_sync_at is not None

    def test_default_range_is_lookback_window(self, service, account):
        broker = FakeBroker()

        service.sync(account, broker)

        assert broker.requested_ranges == [(date(2024, 5, 4), date(2024, 6, 3))]

    def test_explicit_range(self, service, account):
        broker = FakeBroker()

        service.sync(account, broker, date(2024, 1, 1), date(2024, 1, 31))

        assert broker.requested_ranges == [(date(2024, 1, 1), date(2024, 1, 31))]


class TestPartialFailure:
    """Orders and balance are fetched independently."""

    def test_balance_failure_keeps_synced_orders(self, db, service, account):
        broker = FakeBroker(
            orders=[_order("B-1", "BUY", "10", "1300", days=1)],
            balance_error="Bridge timeout",
        )

        result = service.sync(account, broker)

        assert result.synced_count == 1
        assert result.balance_synced is False
        assert result.errors == ["Balance sync failed: Bridge timeout"]

    def test_order_failure_still_fetches_balance(self, db, service, account):
        balance = BrokerBalance(
            currency="USD", balance=Decimal("500"), available_balance=Decimal("500")
        )
        broker = FakeBroker(orders_error="Not logged in", balances=[balance])

        result = service.sync(account, broker)

        assert result.synced_count == 0
        assert result.balance_synced is True
        assert result.balances == [balance]
        assert result.errors == ["Order sync failed: Not logged in"]

    def test_last_sync_at_set_even_on_failure(self, db, service, account):
        service.sync(account, FakeBroker(orders_error="down", balance_error="down"))

        db.refresh(account)
        assert account.last_sync_at is not None


class TestReconcile:
    def test_broker_balance_never_overwrites_ledger(self, db, service, account):
        broker = FakeBroker(
            orders=[_order("B-1", "BUY", "100", "1300", days=1)],
            balances=[
                BrokerBalance(
                    currency="USD",
                    balance=Decimal("999"),
                    available_balance=Decimal("999"),
                    avg_buy_rate=Decimal("1111"),
                )
            ],
        )

        service.sync(account, broker)

        portfolio = db.query(Portfolio).filter(Portfolio.broker_account_id == account.id).one()
        db.refresh(portfolio)
        assert portfolio.current_balance == Decimal("100")
        assert portfolio.avg_buy_rate == Decimal("1300")
