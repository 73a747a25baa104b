"""Tests for the live exchange rate sources."""

from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest

from dollarfolio.services.market_data import KoreaEximRateSource, OpenExchangeRateSource
from dollarfolio.services.market_data.rate_sources import build_quote

# 2024-06-02 23:30 UTC is already 2024-06-03 in Korea
NOW = datetime(2024, 6, 2, 23, 30, tzinfo=UTC)

EXIM_URL = "https://exim.test/exchangeJSON"
ER_URL = "https://er.test/v6/latest/USD"


def _exim(handler, api_key: str = "test-key") -> KoreaEximRateSource:
    return KoreaEximRateSource(
        api_key=api_key,
        url=EXIM_URL,
        clock=lambda: NOW,
        transport=httpx.MockTransport(handler),
    )


def _open_er(handler) -> OpenExchangeRateSource:
    return OpenExchangeRateSource(
        url=ER_URL,
        clock=lambda: NOW,
        transport=httpx.MockTransport(handler),
    )


class TestBuildQuote:
    def test_change_against_previous(self):
        quote = build_quote("USD", Decimal("1380"), Decimal("1370"), NOW, "test")

        assert quote.change == Decimal("10.00")
        assert quote.change_percent == Decimal("0.73")
        assert quote.high == quote.low == Decimal("1380")

    def test_no_previous_means_zero_change(self):
        quote = build_quote("USD", Decimal("1380"), None, NOW, "test")

        assert quote.change == Decimal("0")
        assert quote.change_percent == Decimal("0")


class TestKoreaEximRateSource:
    """Korea Eximbank AP01 parsing."""

    def test_parses_rows_and_scales_per_100_units(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(
                200,
                json=[
                    {"result": 1, "cur_unit": "USD", "deal_bas_r": "1,380.5"},
                    {"result": 1, "cur_unit": "JPY(100)", "deal_bas_r": "885"},
                    {"result": 1, "cur_unit": "EUR", "deal_bas_r": "1,495.2"},
                    {"result": 1, "cur_unit": "AUD", "deal_bas_r": "915.3"},
                ],
            )

        quotes = _exim(handler).fetch_rates({"USD": Decimal("1370.5")})

        by_currency = {q.currency: q for q in quotes}
        assert set(by_currency) == {"USD", "JPY", "EUR"}
        assert by_currency["USD"].rate == Decimal("1380.5")
        assert by_currency["USD"].change == Decimal("10.00")
        assert by_currency["JPY"].rate == Decimal("8.85")
        assert by_currency["EUR"].source == "koreaexim"
        assert seen["params"] == {"authkey": "test-key", "searchdate": "20240603", "data": "AP01"}

    def test_skips_rows_with_error_result(self):
        def handler(request):
            return httpx.Response(
                200,
                json=[
                    {"result": 3, "cur_unit": "USD", "deal_bas_r": "1,380.5"},
                    {"result": 1, "cur_unit": "GBP", "deal_bas_r": "1,752.3"},
                ],
            )

        quotes = _exim(handler).fetch_rates({})

        assert [q.currency for q in quotes] == ["GBP"]

    def test_out_of_range_rate_is_skipped(self):
        def handler(request):
            return httpx.Response(
                200,
                json=[
                    {"result": 1, "cur_unit": "USD", "deal_bas_r": "1e30"},
                    {"result": 1, "cur_unit": "EUR", "deal_bas_r": "1,495.2"},
                ],
            )

        quotes = _exim(handler).fetch_rates({"USD": Decimal("1370.5")})

        assert [q.currency for q in quotes] == ["EUR"]

    def test_empty_array_on_holiday_returns_none(self):
        assert _exim(lambda request: httpx.Response(200, json=[])).fetch_rates({}) is None

    def test_http_error_returns_none(self):
        assert _exim(lambda request: httpx.Response(500)).fetch_rates({}) is None

    def test_without_api_key_makes_no_request(self):
        def handler(request):
            pytest.fail("no request expected without an API key")

        assert _exim(handler, api_key="").fetch_rates({}) is None


class TestOpenExchangeRateSource:
    """open.er-api.com cross rates."""

    def test_cross_rates_from_usd_pivot(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "result": "success",
                    "rates": {
                        "USD": 1,
                        "KRW": 1380.5,
                        "EUR": 0.92,
                        "JPY": 156.0,
                        "CNY": 7.25,
                        "GBP": 0.79,
                    },
                },
            )

        quotes = _open_er(handler).fetch_rates({})

        by_currency = {q.currency: q for q in quotes}
        assert set(by_currency) == {"USD", "EUR", "JPY", "CNY", "GBP"}
        assert by_currency["USD"].rate == Decimal("1380.50")
        assert by_currency["EUR"].rate == Decimal("1500.54")
        assert by_currency["JPY"].rate == Decimal("8.85")
        assert all(q.source == "open_er_api" for q in quotes)

    def test_missing_currency_is_skipped(self):
        def handler(request):
            return httpx.Response(200, json={"result": "success", "rates": {"KRW": 1380, "EUR": 0.92}})

        quotes = _open_er(handler).fetch_rates({})

        assert {q.currency for q in quotes} == {"USD", "EUR"}

    def test_overflowing_cross_rate_is_skipped(self):
        def handler(request):
            return httpx.Response(
                200, json={"result": "success", "rates": {"KRW": 1380, "JPY": "1e-30"}}
            )

        quotes = _open_er(handler).fetch_rates({})

        assert [q.currency for q in quotes] == ["USD"]

    def test_non_success_payload_returns_none(self):
        def handler(request):
            return httpx.Response(200, json={"result": "error", "error-type": "quota-reached"})

        assert _open_er(handler).fetch_rates({}) is None

    def test_missing_krw_returns_none(self):
        def handler(request):
            return httpx.Response(200, json={"result": "success", "rates": {"USD": 1}})

        assert _open_er(handler).fetch_rates({}) is None

    def test_timeout_returns_none(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert _open_er(handler).fetch_rates({}) is None
