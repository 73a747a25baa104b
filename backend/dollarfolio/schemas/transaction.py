"""Pydantic schemas for Transaction model."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TransactionCreate(BaseModel):
    """Schema for recording a manual transaction."""

    portfolio_id: str
    type: Literal["BUY", "SELL"]
    amount: Decimal = Field(..., gt=0, description="Foreign currency units")
    rate: Decimal = Field(..., gt=0, description="KRW per unit")
    fee: Decimal = Field(default=Decimal("0"), ge=0, description="Fee in KRW")
    memo: str | None = Field(None, max_length=200)
    traded_at: datetime | None = None


class Transaction(BaseModel):
    """Schema for Transaction responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    portfolio_id: str
    broker_account_id: str | None = None
    type: str
    currency: str
    amount: Decimal
    rate: Decimal
    krw_amount: Decimal
    fee: Decimal
    memo: str | None = None
    is_manual: bool
    broker_order_id: str | None = None
    traded_at: datetime
    synced_at: datetime | None = None
    created_at: datetime


class TransactionCreated(BaseModel):
    """A recorded transaction together with the portfolio figures after it."""

    transaction: Transaction
    current_balance: Decimal
    avg_buy_rate: Decimal
    total_invested: Decimal
