"""Transaction model - a single BUY or SELL of foreign currency."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from dollarfolio.database import Base

if TYPE_CHECKING:
    from dollarfolio.models.broker_account import BrokerAccount
    from dollarfolio.models.portfolio import Portfolio


class Transaction(Base):
    """Transaction model. Immutable once created; only manual rows may be deleted."""

    __tablename__ = "transactions"
    __table_args__ = (
        # A broker order is synced at most once per broker account
        UniqueConstraint("broker_account_id", "broker_order_id", name="uq_transaction_broker_order"),
        Index("idx_transactions_portfolio_traded_at", "portfolio_id", "traded_at"),
        Index("idx_transactions_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"))
    portfolio_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("portfolios.id", ondelete="CASCADE")
    )
    broker_account_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("broker_accounts.id", ondelete="SET NULL")
    )
    type: Mapped[str] = mapped_column(String(4))  # 'BUY' or 'SELL'
    currency: Mapped[str] = mapped_column(String(3))
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 4))  # Foreign currency units
    rate: Mapped[Decimal] = mapped_column(Numeric(15, 4))  # KRW per unit
    krw_amount: Mapped[Decimal] = mapped_column(Numeric(20, 4))  # amount * rate + fee
    fee: Mapped[Decimal] = mapped_column(Numeric(15, 4), default=Decimal("0"))
    memo: Mapped[str | None] = mapped_column(String(200))
    is_manual: Mapped[bool] = mapped_column(Boolean, default=True)
    broker_order_id: Mapped[str | None] = mapped_column(String(64))
    traded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    # Relationships
    portfolio: Mapped["Portfolio"] = relationship(back_populates="transactions")
    broker_account: Mapped["BrokerAccount | None"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, type='{self.type}', amount={self.amount}, "
            f"rate={self.rate})>"
        )
