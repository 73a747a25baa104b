"""KRW exchange rate sources.

Two live sources are supported:
- Korea Eximbank Open API (official daily rates, requires an auth key)
- open.er-api.com (free, rates pivoted on USD)

Each source returns None instead of raising so the caller can fall through
to the next tier.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import httpx

from dollarfolio.config import settings
from dollarfolio.constants import Currency
from dollarfolio.services.shared import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

# Korea Eximbank publishes rates on Korean business days
KST = timezone(timedelta(hours=9))

CENT = Decimal("0.01")


@dataclass(frozen=True)
class RateQuote:
    """KRW price of one unit of a foreign currency."""

    currency: str
    rate: Decimal
    change: Decimal
    change_percent: Decimal
    high: Decimal
    low: Decimal
    timestamp: datetime
    source: str


# Last resort when every live source and the database are unavailable.
# Illustrative values, not live data.
DEFAULT_RATES: dict[str, Decimal] = {
    Currency.USD: Decimal("1350"),
    Currency.EUR: Decimal("1465"),
    Currency.JPY: Decimal("9.0"),
    Currency.CNY: Decimal("185"),
    Currency.GBP: Decimal("1710"),
}


def _round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def build_quote(
    currency: str,
    rate: Decimal,
    previous: Decimal | None,
    timestamp: datetime,
    source: str,
) -> RateQuote:
    """Build a quote with day-over-day change against the previous stored rate.

    Neither source reports an intraday range, so high and low equal the rate.
    """
    if previous is not None and previous > 0:
        change = rate - previous
        change_percent = change / previous * 100
    else:
        change = Decimal("0")
        change_percent = Decimal("0")

    return RateQuote(
        currency=currency,
        rate=rate,
        change=_round2(change),
        change_percent=_round2(change_percent),
        high=rate,
        low=rate,
        timestamp=timestamp,
        source=source,
    )


class RateSource(ABC):
    """A live source of KRW exchange rates."""

    name: str = "unknown"

    @abstractmethod
    def fetch_rates(self, previous_rates: Mapping[str, Decimal]) -> list[RateQuote] | None:
        """Fetch current quotes for the supported currencies.

        Args:
            previous_rates: Most recent stored rate per currency, used for change figures

        Returns:
            Non-empty list of quotes, or None if the source is unavailable
        """


class KoreaEximRateSource(HTTPClient, RateSource):
    """Korea Eximbank daily exchange rate API (AP01 dataset).

    Rows look like {"result": 1, "cur_unit": "JPY(100)", "deal_bas_r": "935.12", ...}.
    The API returns an empty array on weekends and holidays.
    """

    name = "koreaexim"

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            timeout=timeout if timeout is not None else settings.rate_source_timeout,
            transport=transport,
        )
        self.api_key = settings.korea_exim_api_key if api_key is None else api_key
        self.url = url or settings.korea_exim_url
        self._clock = clock or (lambda: datetime.now(UTC))

    def fetch_rates(self, previous_rates: Mapping[str, Decimal]) -> list[RateQuote] | None:
        if not self.api_key:
            logger.debug("Korea Exim API key not configured, skipping")
            return None

        now = self._clock()
        params = {
            "authkey": self.api_key,
            "searchdate": now.astimezone(KST).strftime("%Y%m%d"),
            "data": "AP01",
        }

        try:
            data = self.get_json(self.url, params=params)
        except HTTPClientError as e:
            logger.warning(f"Korea Exim request failed: {e}")
            return None

        if not isinstance(data, list) or not data:
            logger.info("Korea Exim returned no rates (weekend or holiday)")
            return None

        quotes = []
        for item in data:
            quote = self._parse_item(item, previous_rates, now)
            if quote is not None:
                quotes.append(quote)

        return quotes or None

    def _parse_item(
        self, item: object, previous_rates: Mapping[str, Decimal], now: datetime
    ) -> RateQuote | None:
        if not isinstance(item, dict):
            return None
        # result: 1 success, 2 data code error, 3 auth key error, 4 daily limit exceeded
        if item.get("result", 1) != 1:
            logger.warning(f"Korea Exim row error result={item.get('result')}")
            return None

        unit = str(item.get("cur_unit") or "")
        currency = unit[:3]
        if currency not in Currency.SUPPORTED:
            return None

        try:
            rate = Decimal(str(item.get("deal_bas_r") or "").replace(",", ""))
        except InvalidOperation:
            logger.warning(f"Korea Exim unparseable rate for {unit}: {item.get('deal_bas_r')}")
            return None

        # Quoted per 100 units, e.g. "JPY(100)"
        if unit.endswith("(100)"):
            rate = rate / 100

        if not rate.is_finite() or rate <= 0:
            return None

        try:
            return build_quote(currency, rate, previous_rates.get(currency), now, self.name)
        except ArithmeticError:
            logger.warning(f"Korea Exim rate out of range for {unit}: {item.get('deal_bas_r')}")
            return None


class OpenExchangeRateSource(HTTPClient, RateSource):
    """open.er-api.com latest rates with USD as the pivot currency.

    KRW per unit of X is rates.KRW / rates.X, rounded to 2 decimals.
    """

    name = "open_er_api"

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            timeout=timeout if timeout is not None else settings.rate_source_timeout,
            transport=transport,
        )
        self.url = url or settings.open_exchange_rate_url
        self._clock = clock or (lambda: datetime.now(UTC))

    def fetch_rates(self, previous_rates: Mapping[str, Decimal]) -> list[RateQuote] | None:
        try:
            data = self.get_json(self.url)
        except HTTPClientError as e:
            logger.warning(f"open.er-api request failed: {e}")
            return None

        if not isinstance(data, dict) or data.get("result") != "success":
            logger.warning("open.er-api returned a non-success payload")
            return None

        rates = data.get("rates")
        if not isinstance(rates, dict):
            return None

        krw = self._to_decimal(rates.get(Currency.KRW))
        if krw is None:
            logger.warning("open.er-api payload has no KRW rate")
            return None

        now = self._clock()
        quotes = []
        for currency in Currency.SUPPORTED:
            if currency == Currency.USD:
                rate = krw
            else:
                per_usd = self._to_decimal(rates.get(currency))
                if per_usd is None:
                    continue
                rate = krw / per_usd

            try:
                quote = build_quote(currency, _round2(rate), previous_rates.get(currency), now, self.name)
            except ArithmeticError:
                logger.warning(f"open.er-api rate out of range for {currency}")
                continue
            quotes.append(quote)

        return quotes or None

    @staticmethod
    def _to_decimal(value: object) -> Decimal | None:
        """Convert a JSON number to a positive Decimal, or None."""
        if isinstance(value, bool) or not isinstance(value, int | float | str):
            return None
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        if not result.is_finite() or result <= 0:
            return None
        return result
