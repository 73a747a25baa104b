"""Exchange rate acquisition: sources, cache and persistence."""

from .exchange_rate_service import ExchangeRateService
from .rate_cache import ExpiringCache
from .rate_sources import (
    DEFAULT_RATES,
    KoreaEximRateSource,
    OpenExchangeRateSource,
    RateQuote,
    RateSource,
    build_quote,
)

__all__ = [
    "DEFAULT_RATES",
    "ExchangeRateService",
    "ExpiringCache",
    "KoreaEximRateSource",
    "OpenExchangeRateSource",
    "RateQuote",
    "RateSource",
    "build_quote",
]
