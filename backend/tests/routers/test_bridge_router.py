"""Tests for the broker bridge and broker accounts routers."""

import json
from unittest.mock import patch

import httpx
import pytest

from dollarfolio.dependencies.services import get_hana_client, get_kis_token_cache
from dollarfolio.main import app
from dollarfolio.models import BrokerAccount, Transaction
from dollarfolio.services.brokers.hana import HanaBridgeClient
from dollarfolio.services.brokers.kis import KISClient, TokenCache
from dollarfolio.services.brokers.kis.client import ORDER_HISTORY_PATH, TOKEN_PATH


class FakeBridge:
    """Hana PC bridge answering from a path table."""

    def __init__(self, hana_connected: bool = True):
        self.running = True
        self.hana_connected = hana_connected
        self.orders: list[dict] = []
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if not self.running:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append((path, body))

        if path == "/api/status":
            return httpx.Response(
                200, json={"connected": True, "hanaConnected": self.hana_connected, "version": "1.0"}
            )
        if path == "/api/hana/connect":
            return httpx.Response(200, json={"success": True, "message": "Connected"})
        if path == "/api/hana/balance":
            return httpx.Response(
                200,
                json={"success": True, "balances": [{"currency": "USD", "balance": 100, "availableBalance": 100}]},
            )
        if path == "/api/hana/orders":
            return httpx.Response(200, json={"success": True, "orders": self.orders})
        if path.startswith("/api/hana/order/"):
            return httpx.Response(200, json={"success": True, "orderId": "H-100"})
        return httpx.Response(404, json={"success": False, "error": "Unknown path"})


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def bridge_client(auth_client, bridge):
    """Authenticated client talking to the fake bridge."""

    def override_get_hana_client():
        with HanaBridgeClient(base_url="http://bridge.test", transport=httpx.MockTransport(bridge)) as client:
            yield client

    app.dependency_overrides[get_hana_client] = override_get_hana_client
    return auth_client


@pytest.fixture
def hana_account(db, test_user) -> BrokerAccount:
    account = BrokerAccount(
        user_id=test_user.id,
        broker="HANA",
        account_no="123-456789-01",
        account_alias="Hana 9-01",
        is_active=True,
    )
    db.add(account)
    db.commit()
    return account


class TestBridgeStatus:
    def test_status_reports_bridge_state(self, bridge_client):
        response = bridge_client.get("/api/bridge/status")

        assert response.status_code == 200
        assert response.json() == {"connected": True, "hana_connected": True, "version": "1.0"}

    def test_bridge_down_is_not_an_error(self, bridge_client, bridge):
        bridge.running = False

        response = bridge_client.get("/api/bridge/status")

        assert response.status_code == 200
        assert response.json()["connected"] is False


class TestHanaConnect:
    def test_links_account_with_portfolio(self, bridge_client, db):
        response = bridge_client.post(
            "/api/bridge/hana/connect", json={"account_no": "123-456789-01"}
        )

        assert response.status_code == 200
        accounts = bridge_client.get("/api/broker-accounts").json()
        assert [a["account_alias"] for a in accounts] == ["Hana 9-01"]
        portfolios = bridge_client.get("/api/portfolios").json()
        assert portfolios[0]["broker"] == "HANA"

    def test_bridge_not_running(self, bridge_client, bridge):
        bridge.running = False

        response = bridge_client.post(
            "/api/bridge/hana/connect", json={"account_no": "123-456789-01"}
        )

        assert response.status_code == 503


class TestHanaSync:
    def test_sync_imports_completed_orders(self, bridge_client, bridge, db, hana_account):
        bridge.orders = [
            {"orderId": "H-1", "type": "BUY", "amount": 100, "rate": 1300, "orderedAt": "2024-05-10T10:00:00"},
            {"orderId": "H-2", "type": "BUY", "amount": 50, "rate": 1310, "status": "PENDING", "orderedAt": "2024-05-11T10:00:00"},
        ]

        response = bridge_client.post(
            "/api/bridge/hana/sync",
            json={"broker_account_id": hana_account.id, "start_date": "2024-05-01", "end_date": "2024-05-31"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["synced_count"] == 1
        assert data["balance_synced"] is True
        assert db.query(Transaction).filter(Transaction.broker_order_id == "H-1").count() == 1

        again = bridge_client.post(
            "/api/bridge/hana/sync", json={"broker_account_id": hana_account.id}
        ).json()
        assert again["synced_count"] == 0
        assert again["skipped_count"] == 1

    def test_sync_requires_hana_login(self, bridge_client, bridge, hana_account):
        bridge.hana_connected = False

        response = bridge_client.post(
            "/api/bridge/hana/sync", json={"broker_account_id": hana_account.id}
        )

        assert response.status_code == 503

    def test_sync_unknown_account(self, bridge_client):
        response = bridge_client.post("/api/bridge/hana/sync", json={"broker_account_id": "missing"})

        assert response.status_code == 404

    def test_synced_transaction_cannot_be_deleted(self, bridge_client, bridge, hana_account):
        bridge.orders = [
            {"orderId": "H-1", "type": "BUY", "amount": 10, "rate": 1300, "orderedAt": "2024-05-10T10:00:00"}
        ]
        bridge_client.post("/api/bridge/hana/sync", json={"broker_account_id": hana_account.id})
        synced = bridge_client.get("/api/transactions").json()["items"][0]

        response = bridge_client.delete(f"/api/transactions/{synced['id']}")

        assert response.status_code == 400


class TestHanaOrderAndBalance:
    def test_place_order(self, bridge_client, bridge, hana_account):
        response = bridge_client.post(
            "/api/bridge/hana/order",
            json={"broker_account_id": hana_account.id, "type": "BUY", "amount": "100"},
        )

        assert response.status_code == 200
        assert response.json()["order_id"] == "H-100"
        assert bridge.requests[-1] == (
            "/api/hana/order/buy",
            {"accountNo": "123-456789-01", "amount": 100.0, "rate": 0.0, "password": ""},
        )

    def test_balance(self, bridge_client, hana_account):
        response = bridge_client.get(
            "/api/bridge/hana/balance", params={"broker_account_id": hana_account.id}
        )

        assert response.status_code == 200
        assert response.json()["balances"][0]["currency"] == "USD"


def _fake_kis(valid: bool = True, orders: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == TOKEN_PATH:
            if not valid:
                return httpx.Response(403, json={"error_description": "Invalid AppKey"})
            return httpx.Response(200, json={"access_token": "t", "expires_in": 86400})
        if request.url.path == ORDER_HISTORY_PATH:
            return httpx.Response(200, json={"rt_cd": "0", "output": orders or []})
        return httpx.Response(200, json={"rt_cd": "0", "output2": []})

    def factory(*args, **kwargs):
        return KISClient(*args, base_url="https://kis.test", transport=httpx.MockTransport(handler), **kwargs)

    return factory


@pytest.fixture
def kis_client(auth_client):
    app.dependency_overrides[get_kis_token_cache] = lambda: TokenCache()
    return auth_client


class TestKIS:
    def test_connect_links_account(self, kis_client):
        payload = {"app_key": "key", "app_secret": "secret", "account_no": "12345678-01"}

        with patch("dollarfolio.routers.bridge.KISClient", side_effect=_fake_kis()):
            response = kis_client.post("/api/bridge/kis/connect", json=payload)
            duplicate = kis_client.post("/api/bridge/kis/connect", json=payload)

        assert response.status_code == 200
        assert duplicate.status_code == 400
        accounts = kis_client.get("/api/broker-accounts").json()
        assert accounts[0]["broker"] == "KIS"
        assert "app_secret" not in accounts[0]

    def test_connect_rejects_bad_credentials(self, kis_client):
        payload = {"app_key": "key", "app_secret": "wrong", "account_no": "12345678-01"}

        with patch("dollarfolio.routers.bridge.KISClient", side_effect=_fake_kis(valid=False)):
            response = kis_client.post("/api/bridge/kis/connect", json=payload)

        assert response.status_code == 400
        assert kis_client.get("/api/broker-accounts").json() == []

    def test_sync(self, kis_client):
        payload = {"app_key": "key", "app_secret": "secret", "account_no": "12345678-01"}
        orders = [
            {
                "ODNO": "001",
                "SLL_BUY_DVSN_CD": "02",
                "FT_CCLD_QTY": "100",
                "FT_CCLD_UNPR3": "1350",
                "CCLD_DT": "20240510",
                "ORD_TMD": "103000",
            }
        ]

        with patch("dollarfolio.routers.bridge.KISClient", side_effect=_fake_kis(orders=orders)):
            account_id = kis_client.post("/api/bridge/kis/connect", json=payload).json()["broker_account_id"]
            response = kis_client.post("/api/bridge/kis/sync", json={"broker_account_id": account_id})

        assert response.status_code == 200
        assert response.json()["synced_count"] == 1
        portfolios = kis_client.get("/api/portfolios").json()
        assert portfolios[0]["broker"] == "KIS"


class TestBrokerAccounts:
    def test_unlink_hides_account_but_keeps_portfolio(self, bridge_client):
        bridge_client.post("/api/bridge/hana/connect", json={"account_no": "123-456789-01"})
        account_id = bridge_client.get("/api/broker-accounts").json()[0]["id"]

        response = bridge_client.delete(f"/api/broker-accounts/{account_id}")

        assert response.status_code == 204
        assert bridge_client.get("/api/broker-accounts").json() == []
        assert len(bridge_client.get("/api/portfolios").json()) == 1

    def test_unlink_unknown_account(self, auth_client):
        assert auth_client.delete("/api/broker-accounts/missing").status_code == 404
