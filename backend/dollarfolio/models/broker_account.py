"""Broker Account model - a linked brokerage account."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from dollarfolio.database import Base

if TYPE_CHECKING:
    from dollarfolio.models.portfolio import Portfolio
    from dollarfolio.models.transaction import Transaction
    from dollarfolio.models.user import User


class BrokerAccount(Base):
    """Brokerage account linked by a user.

    Hana accounts only carry the account number (the bridge holds the
    session). KIS accounts carry the OpenAPI app key and secret.
    """

    __tablename__ = "broker_accounts"
    __table_args__ = (Index("idx_broker_accounts_user_broker", "user_id", "broker"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"))
    broker: Mapped[str] = mapped_column(String(10))  # 'HANA' or 'KIS'
    account_no: Mapped[str] = mapped_column(String(30))
    app_key: Mapped[str | None] = mapped_column(String(100))
    app_secret: Mapped[str | None] = mapped_column(String(255))
    account_alias: Mapped[str | None] = mapped_column(String(50))
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    # Relationships
    user: Mapped["User"] = relationship(back_populates="broker_accounts")
    portfolios: Mapped[list["Portfolio"]] = relationship(back_populates="broker_account")
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="broker_account")

    def __repr__(self) -> str:
        return f"<BrokerAccount(id={self.id}, broker='{self.broker}', alias='{self.account_alias}')>"
