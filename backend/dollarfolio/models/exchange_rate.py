"""Exchange Rate model - append-only KRW rate snapshots."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dollarfolio.database import Base


class ExchangeRate(Base):
    """Snapshot of one currency's KRW rate. Rows are never updated or deleted."""

    __tablename__ = "exchange_rates"
    __table_args__ = (Index("idx_rates_currency_timestamp", "currency", "timestamp"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    currency: Mapped[str] = mapped_column(String(3))
    rate: Mapped[Decimal] = mapped_column(Numeric(15, 4))
    change: Mapped[Decimal] = mapped_column(Numeric(15, 4), default=Decimal("0"))
    change_percent: Mapped[Decimal] = mapped_column(Numeric(9, 4), default=Decimal("0"))
    high: Mapped[Decimal] = mapped_column(Numeric(15, 4))
    low: Mapped[Decimal] = mapped_column(Numeric(15, 4))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def __repr__(self) -> str:
        return f"<ExchangeRate({self.currency}/KRW={self.rate} at {self.timestamp})>"
