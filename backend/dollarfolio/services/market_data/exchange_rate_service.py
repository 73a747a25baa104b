"""Service for reading, caching and storing KRW exchange rates."""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dollarfolio.config import settings
from dollarfolio.models import ExchangeRate
from dollarfolio.services.repositories import ExchangeRateRepository

from .rate_cache import ExpiringCache
from .rate_sources import DEFAULT_RATES, RateQuote, RateSource, build_quote

logger = logging.getLogger(__name__)

CACHE_KEY = "rates"


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ExchangeRateService:
    """Exchange rates with tiered fallback.

    Order of resolution, stopping at the first tier that yields quotes:
    1. in-memory cache (5 minutes)
    2. live sources in priority order; a hit is cached and written back
    3. latest stored row per currency, however old
    4. hardcoded defaults
    """

    def __init__(
        self,
        cache: ExpiringCache,
        sources: Sequence[RateSource],
        clock: Callable[[], datetime] | None = None,
        write_interval_seconds: int | None = None,
    ):
        self.cache = cache
        self.sources = list(sources)
        self._clock = clock or (lambda: datetime.now(UTC))
        self.write_interval = timedelta(
            seconds=write_interval_seconds
            if write_interval_seconds is not None
            else settings.rate_write_interval_seconds
        )

    def get_rates(self, db: Session) -> list[RateQuote]:
        """Get quotes for all supported currencies. Never raises, never empty."""
        cached = self.cache.get(CACHE_KEY)
        if cached:
            return cached

        previous_rates = self._previous_rates(db)

        for source in self.sources:
            try:
                quotes = source.fetch_rates(previous_rates)
            except Exception:
                logger.exception(f"Rate source {source.name} failed")
                continue
            if quotes:
                logger.info(f"Fetched {len(quotes)} rates from {source.name}")
                self.cache.set(CACHE_KEY, quotes)
                self.save_rates(db, quotes)
                return quotes

        stored = self._stored_rates(db)
        if stored:
            logger.warning("All rate sources failed, serving last stored rates")
            return stored

        logger.warning("All rate sources failed and no stored rates, serving defaults")
        return self._default_rates()

    def get_rate(self, db: Session, currency: str) -> RateQuote | None:
        """Get the quote for one currency, or None if it is not supported."""
        return next((q for q in self.get_rates(db) if q.currency == currency), None)

    def get_history(self, db: Session, currency: str, days: int = 30) -> list[dict]:
        """Daily rate history for a currency.

        Args:
            db: Database session
            currency: Currency code
            days: Look-back window in days

        Returns:
            List of {"date": "YYYY-MM-DD", "rate": Decimal}, oldest first, one
            point per calendar day (the last snapshot of the day)
        """
        since = self._clock() - timedelta(days=days)
        try:
            rows = ExchangeRateRepository(db).find_history(currency, since)
        except SQLAlchemyError:
            logger.exception(f"Failed to load rate history for {currency}")
            return []

        daily: dict[str, Decimal] = {}
        for row in rows:
            daily[_as_utc(row.timestamp).date().isoformat()] = row.rate

        return [{"date": day, "rate": rate} for day, rate in daily.items()]

    def save_rates(self, db: Session, quotes: Sequence[RateQuote]) -> bool:
        """Persist one snapshot row per quote, at most once per write interval.

        Failures are rolled back and logged, never raised.

        Returns:
            True if rows were written
        """
        now = self._clock()
        repo = ExchangeRateRepository(db)

        try:
            if repo.exists_since(now - self.write_interval):
                logger.debug("Rates stored within the last interval, skipping write-back")
                return False

            repo.add_all(
                [
                    ExchangeRate(
                        currency=q.currency,
                        rate=q.rate,
                        change=q.change,
                        change_percent=q.change_percent,
                        high=q.high,
                        low=q.low,
                        timestamp=now,
                    )
                    for q in quotes
                ]
            )
            db.commit()
            logger.info(f"Stored {len(quotes)} exchange rate snapshots")
            return True
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to store exchange rates")
            return False

    def _previous_rates(self, db: Session) -> dict[str, Decimal]:
        try:
            return {
                currency: row.rate
                for currency, row in ExchangeRateRepository(db).find_latest_rates_map().items()
            }
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to load previous rates")
            return {}

    def _stored_rates(self, db: Session) -> list[RateQuote]:
        try:
            rows = ExchangeRateRepository(db).find_latest_per_currency()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to load stored rates")
            return []

        return [
            RateQuote(
                currency=row.currency,
                rate=row.rate,
                change=row.change,
                change_percent=row.change_percent,
                high=row.high,
                low=row.low,
                timestamp=_as_utc(row.timestamp),
                source="database",
            )
            for row in rows
        ]

    def _default_rates(self) -> list[RateQuote]:
        now = self._clock()
        return [
            build_quote(currency, rate, None, now, "default")
            for currency, rate in DEFAULT_RATES.items()
        ]
