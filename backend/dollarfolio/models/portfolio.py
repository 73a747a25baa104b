"""Portfolio model - a foreign currency position tracked in KRW."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from dollarfolio.database import Base

if TYPE_CHECKING:
    from dollarfolio.models.broker_account import BrokerAccount
    from dollarfolio.models.transaction import Transaction
    from dollarfolio.models.user import User


class Portfolio(Base):
    """Portfolio holding one foreign currency.

    current_balance, avg_buy_rate and total_invested are maintained by the
    ledger service and must not be written anywhere else.
    """

    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    broker_account_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("broker_accounts.id", ondelete="SET NULL"), index=True
    )
    name: Mapped[str] = mapped_column(String(50))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    description: Mapped[str | None] = mapped_column(Text)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(20, 4), default=Decimal("0"))
    avg_buy_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"))
    total_invested: Mapped[Decimal] = mapped_column(Numeric(20, 4), default=Decimal("0"))
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    # Relationships
    user: Mapped["User"] = relationship(back_populates="portfolios")
    broker_account: Mapped["BrokerAccount | None"] = relationship(back_populates="portfolios")
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="portfolio", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Portfolio(id={self.id}, name='{self.name}', currency='{self.currency}')>"
