"""Tests for the Hana Securities PC bridge client."""

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from dollarfolio.services.brokers import BrokerAPIError
from dollarfolio.services.brokers.hana import HanaBridgeClient

KST = timezone(timedelta(hours=9))


def _client(handler, account_no: str = "123-456789-01") -> HanaBridgeClient:
    return HanaBridgeClient(
        account_no=account_no,
        base_url="http://bridge.test",
        transport=httpx.MockTransport(handler),
    )


class TestBridgeStatus:
    def test_connected_and_logged_in(self):
        def handler(request):
            assert request.url.path == "/api/status"
            return httpx.Response(200, json={"connected": True, "hanaConnected": True, "version": "1.2"})

        status = _client(handler).get_status()

        assert status.connected is True
        assert status.hana_connected is True
        assert status.version == "1.2"

    def test_unreachable_bridge_reports_disconnected(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        status = _client(handler).get_status()

        assert status.connected is False
        assert status.hana_connected is False


class TestSessionOperations:
    def test_login_failure_message_from_body(self):
        def handler(request):
            assert request.url.path == "/api/hana/login"
            return httpx.Response(400, json={"success": False, "error": "Certificate cancelled"})

        result = _client(handler).login()

        assert result.success is False
        assert result.message == "Certificate cancelled"

    def test_connect_raises_when_session_cannot_open(self):
        def handler(request):
            return httpx.Response(500, json={"error": "OCX not installed"})

        with pytest.raises(BrokerAPIError, match="OCX not installed"):
            _client(handler).connect()

    def test_logout_success(self):
        result = _client(lambda request: httpx.Response(200, json={"success": True})).logout()

        assert result.success is True
        assert result.message == "Logged out"


class TestGetBalance:
    def test_sends_account_and_parses_balances(self):
        def handler(request):
            assert json.loads(request.content) == {"accountNo": "123-456789-01"}
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "balances": [
                        {
                            "currency": "USD",
                            "balance": 1500.25,
                            "availableBalance": 1400,
                            "avgBuyRate": 1350.5,
                            "profitLoss": 45000,
                            "profitLossPercent": 2.2,
                        }
                    ],
                },
            )

        balances = _client(handler).get_balance()

        assert len(balances) == 1
        assert balances[0].balance == Decimal("1500.25")
        assert balances[0].available_balance == Decimal("1400")
        assert balances[0].avg_buy_rate == Decimal("1350.5")

    def test_single_balance_object(self):
        def handler(request):
            return httpx.Response(
                200, json={"success": True, "balance": {"currency": "USD", "balance": "10"}}
            )

        balances = _client(handler).get_balance()

        assert [b.balance for b in balances] == [Decimal("10")]

    def test_failure_raises(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Not logged in"})

        with pytest.raises(BrokerAPIError, match="Not logged in"):
            _client(handler).get_balance()

    def test_non_json_response_raises(self):
        with pytest.raises(BrokerAPIError):
            _client(lambda request: httpx.Response(200, text="<html>")).get_balance()


class TestOrders:
    def test_place_buy_order(self):
        def handler(request):
            assert request.url.path == "/api/hana/order/buy"
            assert json.loads(request.content) == {
                "accountNo": "123-456789-01",
                "amount": 100.0,
                "rate": 0.0,
                "password": "",
            }
            return httpx.Response(200, json={"success": True, "orderId": "H-1"})

        result = _client(handler).place_buy_order(Decimal("100"))

        assert result.success is True
        assert result.order_id == "H-1"

    def test_rejected_sell_order(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Insufficient funds"})

        result = _client(handler).place_sell_order(Decimal("100"), Decimal("1400"))

        assert result.success is False
        assert result.message == "Insufficient funds"

    def test_list_orders_keeps_completed_orders(self):
        def handler(request):
            assert json.loads(request.content) == {
                "accountNo": "123-456789-01",
                "startDate": "20240501",
                "endDate": "20240531",
            }
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "orders": [
                        {
                            "orderId": "H-1",
                            "type": "BUY",
                            "currency": "USD",
                            "amount": 100,
                            "rate": 1350.5,
                            "status": "COMPLETED",
                            "orderedAt": "2024-05-10T10:30:00",
                        },
                        {
                            "orderId": "H-2",
                            "type": "SELL",
                            "amount": 50,
                            "rate": 1360,
                            "status": "PENDING",
                            "orderedAt": "2024-05-11T10:30:00",
                        },
                        {
                            "orderId": "H-3",
                            "type": "SELL",
                            "amount": 20,
                            "rate": 1370,
                            "orderedAt": "2024-05-12T01:00:00+00:00",
                        },
                        {"type": "BUY", "amount": 1, "rate": 1},
                    ],
                },
            )

        orders = _client(handler).list_orders(date(2024, 5, 1), date(2024, 5, 31))

        assert [o.order_id for o in orders] == ["H-1", "H-3"]
        assert orders[0].amount == Decimal("100")
        assert orders[0].rate == Decimal("1350.5")
        assert orders[0].ordered_at == datetime(2024, 5, 10, 10, 30, tzinfo=KST)
        assert orders[1].type == "SELL"
        assert orders[1].ordered_at.utcoffset() == timedelta(0)

    def test_list_orders_skips_non_numeric_figures(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "orders": [
                        {"orderId": "H-1", "type": "BUY", "amount": "NaN", "rate": 1350, "orderedAt": "2024-05-10T10:30:00"},
                        {"orderId": "H-2", "type": "BUY", "amount": 10, "rate": "Infinity", "orderedAt": "2024-05-10T11:30:00"},
                        {"orderId": "H-3", "type": "BUY", "amount": 10, "rate": 1350, "orderedAt": "2024-05-10T12:30:00"},
                    ],
                },
            )

        orders = _client(handler).list_orders(date(2024, 5, 1), date(2024, 5, 31))

        assert [o.order_id for o in orders] == ["H-3"]

    def test_list_orders_failure_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(BrokerAPIError):
            _client(handler).list_orders(date(2024, 5, 1), date(2024, 5, 31))
