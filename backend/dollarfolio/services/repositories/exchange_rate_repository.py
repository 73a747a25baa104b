"""Exchange rate data access layer."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from dollarfolio.models import ExchangeRate

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class ExchangeRateRepository:
    """Centralized exchange rate data access.

    Naming conventions:
    - find_* : Query that may return None or empty list
    - get_* : Query that raises exception if missing
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_latest_per_currency(self) -> "Sequence[ExchangeRate]":
        """Find the most recent snapshot of every currency ever stored."""
        subquery = (
            self._db.query(
                ExchangeRate.id,
                func.row_number()
                .over(
                    partition_by=ExchangeRate.currency,
                    order_by=(desc(ExchangeRate.timestamp), desc(ExchangeRate.id)),
                )
                .label("rn"),
            )
            .subquery()
        )

        return (
            self._db.query(ExchangeRate)
            .join(subquery, ExchangeRate.id == subquery.c.id)
            .filter(subquery.c.rn == 1)
            .order_by(ExchangeRate.currency)
            .all()
        )

    def find_latest_rates_map(self) -> dict[str, ExchangeRate]:
        """Latest snapshot keyed by currency code."""
        return {row.currency: row for row in self.find_latest_per_currency()}

    def exists_since(self, since: datetime) -> bool:
        """Check whether any snapshot was written at or after the given time."""
        return (
            self._db.query(ExchangeRate.id).filter(ExchangeRate.timestamp >= since).first()
            is not None
        )

    def find_history(self, currency: str, since: datetime) -> "Sequence[ExchangeRate]":
        """Find snapshots for a currency from a point in time, oldest first."""
        return (
            self._db.query(ExchangeRate)
            .filter(ExchangeRate.currency == currency, ExchangeRate.timestamp >= since)
            .order_by(ExchangeRate.timestamp, ExchangeRate.id)
            .all()
        )

    def add_all(self, rates: list[ExchangeRate]) -> None:
        """Stage snapshots for insert. The caller owns the commit."""
        self._db.add_all(rates)
