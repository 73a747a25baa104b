"""Process-wide service instances for dependency injection.

Tests override these with app.dependency_overrides.
"""

from collections.abc import Generator
from functools import lru_cache

from dollarfolio.config import settings
from dollarfolio.services.brokers.hana import HanaBridgeClient
from dollarfolio.services.brokers.kis import TokenCache
from dollarfolio.services.market_data import (
    ExchangeRateService,
    ExpiringCache,
    KoreaEximRateSource,
    OpenExchangeRateSource,
)


@lru_cache
def get_exchange_rate_service() -> ExchangeRateService:
    """Single rate service so the 5-minute cache is shared across requests."""
    return ExchangeRateService(
        cache=ExpiringCache(ttl_seconds=settings.rate_cache_ttl_seconds),
        sources=[KoreaEximRateSource(), OpenExchangeRateSource()],
    )


@lru_cache
def get_kis_token_cache() -> TokenCache:
    return TokenCache()


def get_hana_client() -> Generator[HanaBridgeClient, None, None]:
    """Bridge client without an account; routes set account_no when they need one."""
    with HanaBridgeClient() as client:
        yield client
