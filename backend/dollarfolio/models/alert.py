"""Alert models - rate alerts and their delivered notifications."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from dollarfolio.database import Base

if TYPE_CHECKING:
    from dollarfolio.models.user import User


class Alert(Base):
    """Rate alert configured by a user."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    type: Mapped[str] = mapped_column(String(20))  # TARGET_RATE, CHANGE_RATE, DAILY
    target_rate: Mapped[Decimal | None] = mapped_column(Numeric(15, 4))
    direction: Mapped[str | None] = mapped_column(String(4))  # UP or DOWN
    change_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4))  # percent
    daily_time: Mapped[str | None] = mapped_column(String(5))  # HH:MM
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_triggered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    user: Mapped["User"] = relationship(back_populates="alerts")

    def __repr__(self) -> str:
        return f"<Alert(id={self.id}, type='{self.type}', currency='{self.currency}')>"


class AlertLog(Base):
    """Notification produced when an alert fires."""

    __tablename__ = "alert_logs"
    __table_args__ = (Index("idx_alert_logs_user_read", "user_id", "is_read"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"))
    alert_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("alerts.id", ondelete="SET NULL")
    )
    type: Mapped[str] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(100))
    message: Mapped[str] = mapped_column(Text)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(15, 4))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    user: Mapped["User"] = relationship(back_populates="alert_logs")

    def __repr__(self) -> str:
        return f"<AlertLog(id={self.id}, title='{self.title}', read={self.is_read})>"
