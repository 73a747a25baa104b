"""Hana Securities client via the local PC bridge.

Hana's 1Q Open API only runs on the user's Windows machine, so a small
bridge program exposes it over HTTP on localhost (default port 8585).
The bridge holds the certificate login; this client never sees credentials
other than the optional order password.

Bridge endpoints:
    GET  /api/status
    POST /api/hana/connect | /api/hana/login | /api/hana/logout
    POST /api/hana/balance        {accountNo}
    POST /api/hana/order/buy      {accountNo, amount, rate, password}
    POST /api/hana/order/sell     {accountNo, amount, rate, password}
    POST /api/hana/orders         {accountNo, startDate, endDate}
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

import httpx

from dollarfolio.config import settings
from dollarfolio.constants import BrokerType, TransactionType
from dollarfolio.services.brokers.base import (
    BrokerAPIError,
    BrokerBalance,
    BrokerClient,
    BrokerOrder,
    OrderResult,
)
from dollarfolio.services.shared import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

# Bridge timestamps without an offset are local Korean time
KST = timezone(timedelta(hours=9))

STATUS_TIMEOUT = 3.0
CONNECT_TIMEOUT = 10.0
LOGIN_TIMEOUT = 60.0  # certificate login waits for the user
LOGOUT_TIMEOUT = 5.0
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class BridgeStatus:
    connected: bool
    hana_connected: bool
    version: str | None = None


@dataclass(frozen=True)
class OperationResult:
    success: bool
    message: str


def _decimal(value: object, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise BrokerAPIError(f"Invalid number from bridge: {value}", BrokerType.HANA) from e
    if not result.is_finite():
        raise BrokerAPIError(f"Invalid number from bridge: {value}", BrokerType.HANA)
    return result


class HanaBridgeClient(HTTPClient, BrokerClient):
    """Client for the Hana Securities PC bridge.

    Usage:
        client = HanaBridgeClient(account_no="123-456789-01")
        if client.get_status().hana_connected:
            balances = client.get_balance()
    """

    broker = BrokerType.HANA

    def __init__(
        self,
        account_no: str = "",
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.bridge_url,
            timeout=DEFAULT_TIMEOUT,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self.account_no = account_no

    def _post(self, path: str, body: dict | None = None, timeout: float = DEFAULT_TIMEOUT) -> dict:
        """POST to the bridge and return the JSON body.

        The bridge reports failures in the body, so 4xx/5xx responses are
        parsed rather than raised. A missing "success" flag falls back to
        the HTTP status.

        Raises:
            BrokerAPIError: If the bridge is unreachable or returns non-JSON
        """
        try:
            response = self.post(path, json=body or {}, timeout=timeout, raise_for_status=False)
            data = response.json()
        except HTTPClientError as e:
            raise BrokerAPIError(f"Bridge unreachable: {e}", self.broker) from e
        except ValueError as e:
            raise BrokerAPIError(f"Invalid response from bridge: {path}", self.broker) from e

        if not isinstance(data, dict):
            raise BrokerAPIError(f"Invalid response from bridge: {path}", self.broker)

        data.setdefault("success", response.is_success)
        return data

    def _operation(self, path: str, timeout: float, done_message: str) -> OperationResult:
        try:
            data = self._post(path, timeout=timeout)
        except BrokerAPIError as e:
            logger.warning(f"Hana bridge {path} failed: {e}")
            return OperationResult(success=False, message=str(e))

        return OperationResult(
            success=bool(data["success"]),
            message=data.get("message") or data.get("error") or done_message,
        )

    def get_status(self) -> BridgeStatus:
        """Check whether the bridge is running and logged in to Hana.

        Never raises; an unreachable bridge reports not connected.
        """
        try:
            data = self.get_json("/api/status", timeout=STATUS_TIMEOUT)
        except HTTPClientError:
            return BridgeStatus(connected=False, hana_connected=False)

        if not isinstance(data, dict):
            return BridgeStatus(connected=False, hana_connected=False)

        return BridgeStatus(
            connected=bool(data.get("connected", False)),
            hana_connected=bool(data.get("hanaConnected", False)),
            version=data.get("version"),
        )

    def open_session(self) -> OperationResult:
        return self._operation("/api/hana/connect", CONNECT_TIMEOUT, "Connected")

    def login(self) -> OperationResult:
        return self._operation("/api/hana/login", LOGIN_TIMEOUT, "Logged in")

    def logout(self) -> OperationResult:
        return self._operation("/api/hana/logout", LOGOUT_TIMEOUT, "Logged out")

    def connect(self) -> None:
        result = self.open_session()
        if not result.success:
            raise BrokerAPIError(result.message, self.broker)

    def get_balance(self) -> list[BrokerBalance]:
        data = self._post("/api/hana/balance", {"accountNo": self.account_no})
        if not data["success"]:
            raise BrokerAPIError(data.get("error") or "Balance inquiry failed", self.broker)

        items = data.get("balances") or ([data["balance"]] if data.get("balance") else [])
        return [self._parse_balance(item) for item in items if isinstance(item, dict)]

    def place_buy_order(
        self, amount: Decimal, rate: Decimal | None = None, password: str | None = None
    ) -> OrderResult:
        return self._place_order("buy", amount, rate, password)

    def place_sell_order(
        self, amount: Decimal, rate: Decimal | None = None, password: str | None = None
    ) -> OrderResult:
        return self._place_order("sell", amount, rate, password)

    def _place_order(
        self, side: str, amount: Decimal, rate: Decimal | None, password: str | None
    ) -> OrderResult:
        # rate 0 means market order
        body = {
            "accountNo": self.account_no,
            "amount": float(amount),
            "rate": float(rate or 0),
            "password": password or "",
        }
        try:
            data = self._post(f"/api/hana/order/{side}", body)
        except BrokerAPIError as e:
            logger.warning(f"Hana {side} order failed: {e}")
            return OrderResult(success=False, message=str(e))

        if not data["success"]:
            return OrderResult(success=False, message=data.get("error") or f"{side} order failed")

        return OrderResult(
            success=True,
            order_id=data.get("orderId"),
            message=data.get("message") or "Order accepted",
        )

    def list_orders(self, start: date, end: date) -> list[BrokerOrder]:
        data = self._post(
            "/api/hana/orders",
            {
                "accountNo": self.account_no,
                "startDate": start.strftime("%Y%m%d"),
                "endDate": end.strftime("%Y%m%d"),
            },
        )
        if not data["success"]:
            raise BrokerAPIError(data.get("error") or "Order inquiry failed", self.broker)

        orders = []
        for item in data.get("orders") or []:
            order = self._parse_order(item)
            if order is not None:
                orders.append(order)
        return orders

    def _parse_balance(self, item: dict) -> BrokerBalance:
        return BrokerBalance(
            currency=item.get("currency") or "USD",
            balance=_decimal(item.get("balance")),
            available_balance=_decimal(item.get("availableBalance")),
            avg_buy_rate=_decimal(item.get("avgBuyRate")),
            profit_loss=_decimal(item.get("profitLoss")),
            profit_loss_percent=_decimal(item.get("profitLossPercent")),
        )

    def _parse_order(self, item: object) -> BrokerOrder | None:
        """Parse a bridge order. Only completed orders affect the ledger."""
        if not isinstance(item, dict) or not item.get("orderId"):
            return None

        status = item.get("status") or "COMPLETED"
        if status != "COMPLETED":
            logger.debug(f"Skipping Hana order {item['orderId']} with status {status}")
            return None

        order_type = item.get("type")
        if order_type not in (TransactionType.BUY, TransactionType.SELL):
            logger.warning(f"Skipping Hana order {item['orderId']} with type {order_type}")
            return None

        try:
            ordered_at = datetime.fromisoformat(str(item.get("orderedAt")))
        except ValueError:
            logger.warning(f"Skipping Hana order {item['orderId']}: bad orderedAt")
            return None
        if ordered_at.tzinfo is None:
            ordered_at = ordered_at.replace(tzinfo=KST)

        try:
            amount = _decimal(item.get("amount"))
            rate = _decimal(item.get("rate"))
        except BrokerAPIError as e:
            logger.warning(f"Skipping Hana order {item['orderId']}: {e}")
            return None

        return BrokerOrder(
            order_id=str(item["orderId"]),
            type=order_type,
            currency=item.get("currency") or "USD",
            amount=amount,
            rate=rate,
            ordered_at=ordered_at,
            status=status,
            raw_data=item,
        )
