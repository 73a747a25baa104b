"""Korea Investment & Securities (KIS) OpenAPI client.

Authenticates with the OAuth2 client-credentials flow and calls the
overseas trading endpoints. Every domain call carries the bearer token,
the app key/secret, and a transaction id header (tr_id) naming the
operation. Failures are reported in the body: rt_cd "0" is success,
anything else is an error described by msg1.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

import httpx

from dollarfolio.config import settings
from dollarfolio.constants import BrokerType, Currency, TransactionType
from dollarfolio.services.brokers.base import (
    BrokerAPIError,
    BrokerBalance,
    BrokerClient,
    BrokerOrder,
    OrderResult,
)
from dollarfolio.services.shared import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

KST = timezone(timedelta(hours=9))

TOKEN_PATH = "/oauth2/tokenP"
BALANCE_PATH = "/uapi/overseas-stock/v1/trading/inquire-present-balance"
ORDER_PATH = "/uapi/overseas-stock/v1/trading/order"
ORDER_HISTORY_PATH = "/uapi/overseas-stock/v1/trading/inquire-ccnl"

# Transaction ids (production; paper trading uses the V-prefixed variants)
TR_BALANCE = "CTRP6504R"
TR_BUY = "TTTT1002U"
TR_SELL = "TTTT1006U"
TR_ORDER_HISTORY = "TTTC8001R"

DEFAULT_TOKEN_LIFETIME = 86400  # seconds
TOKEN_REFRESH_MARGIN = 300  # refresh 5 minutes before expiry

SELL_CODE = "01"  # SLL_BUY_DVSN_CD; "02" is buy


@dataclass
class KISCredentials:
    """KIS OpenAPI credentials."""

    app_key: str
    app_secret: str
    account_no: str
    account_product_code: str = "01"

    @property
    def cano(self) -> str:
        """Account number body: the first 8 digits."""
        return self.account_no.replace("-", "")[:8]


@dataclass
class CachedToken:
    access_token: str
    expires_at: datetime


class TokenCache:
    """Bearer tokens keyed by "app_key:account_no".

    Entries expire TOKEN_REFRESH_MARGIN seconds before the token itself.
    Last writer wins; no locking.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tokens: dict[str, CachedToken] = {}

    @staticmethod
    def key_for(credentials: KISCredentials) -> str:
        return f"{credentials.app_key}:{credentials.account_no}"

    def get(self, key: str) -> str | None:
        cached = self._tokens.get(key)
        if cached is None or cached.expires_at <= self._clock():
            return None
        return cached.access_token

    def set(self, key: str, access_token: str, expires_in: int) -> None:
        self._tokens[key] = CachedToken(
            access_token=access_token,
            expires_at=self._clock() + timedelta(seconds=expires_in - TOKEN_REFRESH_MARGIN),
        )

    def invalidate(self, key: str) -> None:
        self._tokens.pop(key, None)


def _decimal(value: object) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value).replace(",", ""))
    except InvalidOperation as e:
        raise BrokerAPIError(f"Invalid number from KIS: {value}", BrokerType.KIS) from e
    if not result.is_finite():
        raise BrokerAPIError(f"Invalid number from KIS: {value}", BrokerType.KIS)
    return result


class KISClient(HTTPClient, BrokerClient):
    """Client for the KIS OpenAPI.

    Usage:
        client = KISClient(KISCredentials(app_key="...", app_secret="...", account_no="12345678-01"))
        balances = client.get_balance()
        orders = client.list_orders(date(2024, 1, 1), date(2024, 1, 31))
    """

    broker = BrokerType.KIS

    def __init__(
        self,
        credentials: KISCredentials,
        token_cache: TokenCache | None = None,
        base_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.kis_base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json; charset=UTF-8"},
            transport=transport,
        )
        self.credentials = credentials
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        self._cache_key = TokenCache.key_for(credentials)

    def _get_access_token(self) -> str:
        """Return a cached token or issue a new one.

        Raises:
            BrokerAPIError: If the token endpoint rejects the credentials
        """
        token = self.token_cache.get(self._cache_key)
        if token:
            return token

        try:
            response = self.post(
                TOKEN_PATH,
                json={
                    "grant_type": "client_credentials",
                    "appkey": self.credentials.app_key,
                    "appsecret": self.credentials.app_secret,
                },
                raise_for_status=False,
            )
            data = response.json()
        except HTTPClientError as e:
            raise BrokerAPIError(f"Token request failed: {e}", self.broker) from e
        except ValueError as e:
            raise BrokerAPIError("Invalid token response", self.broker) from e

        if not isinstance(data, dict):
            raise BrokerAPIError("Invalid token response", self.broker)

        if not response.is_success:
            raise BrokerAPIError(
                data.get("msg1")
                or data.get("error_description")
                or f"Token request failed: HTTP {response.status_code}",
                self.broker,
            )

        access_token = data.get("access_token")
        if not access_token:
            raise BrokerAPIError("Token missing from response", self.broker)

        try:
            expires_in = int(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        except (TypeError, ValueError, OverflowError):
            logger.warning(f"Unexpected KIS token lifetime {data.get('expires_in')!r}, using default")
            expires_in = DEFAULT_TOKEN_LIFETIME
        self.token_cache.set(self._cache_key, access_token, expires_in)
        logger.info(f"Issued KIS access token for account ...{self.credentials.account_no[-4:]}")
        return access_token

    def _api_request(
        self,
        method: str,
        path: str,
        tr_id: str,
        params: dict | None = None,
        body: dict | None = None,
    ) -> dict:
        """Make an authenticated domain call.

        Raises:
            BrokerAPIError: On transport failure or rt_cd != "0"
        """
        headers = {
            "authorization": f"Bearer {self._get_access_token()}",
            "appkey": self.credentials.app_key,
            "appsecret": self.credentials.app_secret,
            "tr_id": tr_id,
        }

        try:
            response = self._request(
                method, path, params=params, json=body, headers=headers, raise_for_status=False
            )
            data = response.json()
        except HTTPClientError as e:
            raise BrokerAPIError(f"KIS request failed: {e}", self.broker) from e
        except ValueError as e:
            raise BrokerAPIError(f"Invalid response from KIS ({tr_id})", self.broker) from e

        if response.status_code == 401:
            self.token_cache.invalidate(self._cache_key)

        if not isinstance(data, dict):
            raise BrokerAPIError(f"Invalid response from KIS ({tr_id})", self.broker)

        if data.get("rt_cd") != "0":
            raise BrokerAPIError(
                data.get("msg1") or f"KIS error rt_cd={data.get('rt_cd')}",
                self.broker,
                code=data.get("msg_cd"),
            )
        return data

    def connect(self) -> None:
        self._get_access_token()

    def verify_credentials(self) -> bool:
        """Check that the app key and secret can obtain a token."""
        try:
            self._get_access_token()
        except BrokerAPIError as e:
            logger.warning(f"KIS credential check failed: {e}")
            return False
        return True

    def get_balance(self) -> list[BrokerBalance]:
        data = self._api_request(
            "GET",
            BALANCE_PATH,
            TR_BALANCE,
            params={
                "CANO": self.credentials.cano,
                "ACNT_PRDT_CD": self.credentials.account_product_code,
                "WCRC_FRCR_DVSN_CD": "01",  # foreign currency
                "NATN_CD": "840",  # United States
                "TR_MKET_CD": "00",
                "INQR_DVSN_CD": "00",
            },
        )

        output = (data.get("output2") or [None])[0]
        if not output:
            zero = Decimal("0")
            return [
                BrokerBalance(
                    currency=Currency.USD, balance=zero, available_balance=zero, total_value=zero
                )
            ]

        total_value = _decimal(output.get("frcr_evlu_amt2"))
        purchase_amount = _decimal(output.get("frcr_pchs_amt1"))
        profit_loss = _decimal(output.get("ovrs_rlzt_pfls_amt"))
        profit_loss_percent = (
            profit_loss / purchase_amount * 100 if purchase_amount > 0 else Decimal("0")
        )

        return [
            BrokerBalance(
                currency=Currency.USD,
                balance=total_value,
                available_balance=_decimal(output.get("frcr_dncl_amt_2")),
                total_value=total_value,
                profit_loss=profit_loss,
                profit_loss_percent=profit_loss_percent,
            )
        ]

    def place_buy_order(self, amount: Decimal) -> OrderResult:
        return self._place_order(TR_BUY, amount)

    def place_sell_order(self, amount: Decimal) -> OrderResult:
        return self._place_order(TR_SELL, amount)

    def _place_order(self, tr_id: str, amount: Decimal) -> OrderResult:
        body = {
            "CANO": self.credentials.cano,
            "ACNT_PRDT_CD": self.credentials.account_product_code,
            "OVRS_EXCG_CD": "NASD",
            "PDNO": Currency.USD,
            "ORD_QTY": str(amount),
            "OVRS_ORD_UNPR": "0",  # market order
            "ORD_DVSN": "00",
            "ORD_SVR_DVSN_CD": "0",
        }
        try:
            data = self._api_request("POST", ORDER_PATH, tr_id, body=body)
        except BrokerAPIError as e:
            logger.warning(f"KIS order {tr_id} failed: {e}")
            return OrderResult(success=False, message=str(e))

        return OrderResult(
            success=True,
            order_id=(data.get("output") or {}).get("ODNO") or None,
            message=data.get("msg1") or "Order accepted",
        )

    def list_orders(self, start: date, end: date) -> list[BrokerOrder]:
        data = self._api_request(
            "GET",
            ORDER_HISTORY_PATH,
            TR_ORDER_HISTORY,
            params={
                "CANO": self.credentials.cano,
                "ACNT_PRDT_CD": self.credentials.account_product_code,
                "PDNO": "",
                "ORD_STRT_DT": start.strftime("%Y%m%d"),
                "ORD_END_DT": end.strftime("%Y%m%d"),
                "SLL_BUY_DVSN": "00",  # all
                "CCLD_NCCS_DVSN": "00",  # filled and unfilled
                "OVRS_EXCG_CD": "NASD",
                "SORT_SQN": "DS",
                "ORD_DT": "",
                "ORD_GNO_BRNO": "",
                "ODNO": "",
            },
        )

        output = data.get("output")
        if not isinstance(output, list):
            return []

        orders = []
        for item in output:
            order = self._parse_order(item, fallback_date=end)
            if order is not None:
                orders.append(order)
        return orders

    def _parse_order(self, item: object, fallback_date: date) -> BrokerOrder | None:
        if not isinstance(item, dict) or not item.get("ODNO"):
            return None

        try:
            amount = _decimal(item.get("FT_CCLD_QTY"))
            rate = _decimal(item.get("FT_CCLD_UNPR3"))
        except BrokerAPIError as e:
            logger.warning(f"Skipping KIS order {item['ODNO']}: {e}")
            return None

        if amount <= 0:
            # Not filled
            return None

        return BrokerOrder(
            order_id=str(item["ODNO"]),
            type=TransactionType.SELL
            if item.get("SLL_BUY_DVSN_CD") == SELL_CODE
            else TransactionType.BUY,
            currency=Currency.USD,
            amount=amount,
            rate=rate,
            ordered_at=self._parse_fill_time(item, fallback_date),
            raw_data=item,
        )

    @staticmethod
    def _parse_fill_time(item: dict, fallback_date: date) -> datetime:
        """Combine CCLD_DT (YYYYMMDD) and ORD_TMD (HHMMSS) as Korean time."""
        day = item.get("CCLD_DT") or item.get("ORD_DT") or fallback_date.strftime("%Y%m%d")
        clock = (item.get("ORD_TMD") or "000000").ljust(6, "0")
        try:
            return datetime.strptime(f"{day}{clock[:6]}", "%Y%m%d%H%M%S").replace(tzinfo=KST)
        except ValueError:
            logger.warning(f"Unparseable KIS fill time for order {item.get('ODNO')}")
            return datetime.combine(fallback_date, datetime.min.time(), tzinfo=KST)
