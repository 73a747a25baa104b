"""Pydantic schemas for rate alerts."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dollarfolio.constants import AlertType


class AlertCreate(BaseModel):
    """Schema for creating an alert.

    TARGET_RATE needs target_rate and direction, CHANGE_RATE needs
    change_rate, DAILY needs daily_time.
    """

    currency: str = Field("USD", min_length=3, max_length=3)
    type: Literal["TARGET_RATE", "CHANGE_RATE", "DAILY"]
    target_rate: Decimal | None = Field(None, gt=0)
    direction: Literal["UP", "DOWN"] | None = None
    change_rate: Decimal | None = Field(None, gt=0, description="Percent")
    daily_time: str | None = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")

    @model_validator(mode="after")
    def check_type_fields(self) -> Self:
        if self.type == AlertType.TARGET_RATE and (
            self.target_rate is None or self.direction is None
        ):
            raise ValueError("Target rate alerts need target_rate and direction")
        if self.type == AlertType.CHANGE_RATE and self.change_rate is None:
            raise ValueError("Change rate alerts need change_rate")
        if self.type == AlertType.DAILY and self.daily_time is None:
            raise ValueError("Daily alerts need daily_time")
        return self


class AlertUpdate(BaseModel):
    is_active: bool


class Alert(BaseModel):
    """Schema for Alert responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    currency: str
    type: str
    target_rate: Decimal | None = None
    direction: str | None = None
    change_rate: Decimal | None = None
    daily_time: str | None = None
    is_active: bool
    last_triggered_at: datetime | None = None
    created_at: datetime


class AlertLog(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    alert_id: str | None = None
    type: str
    title: str
    message: str
    rate: Decimal | None = None
    is_read: bool
    created_at: datetime


class AlertLogList(BaseModel):
    logs: list[AlertLog]
    unread_count: int


class AlertLogMarkRead(BaseModel):
    """Mark every log read, or only the listed ones."""

    mark_all_read: bool = False
    log_ids: list[str] = Field(default_factory=list)
