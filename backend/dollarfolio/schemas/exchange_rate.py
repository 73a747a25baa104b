"""Pydantic schemas for exchange rate responses."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class RateQuote(BaseModel):
    """KRW price of one unit of a foreign currency."""

    model_config = ConfigDict(from_attributes=True)

    currency: str
    rate: Decimal
    change: Decimal
    change_percent: Decimal
    high: Decimal
    low: Decimal
    timestamp: datetime
    source: str


class RatesResponse(BaseModel):
    rates: list[RateQuote]
    updated_at: datetime


class RateHistoryPoint(BaseModel):
    date: str  # YYYY-MM-DD
    rate: Decimal


class RateHistoryResponse(BaseModel):
    currency: str
    days: int
    history: list[RateHistoryPoint]
