"""Pydantic schemas for Portfolio model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from dollarfolio.constants import BrokerType, Currency
from dollarfolio.schemas.transaction import Transaction


class PortfolioCreate(BaseModel):
    """Schema for creating a new Portfolio."""

    name: str = Field(..., min_length=1, max_length=50)
    currency: str = Field(Currency.USD, min_length=3, max_length=3)
    description: str | None = Field(None, max_length=500)
    broker_account_id: str | None = None


class PortfolioUpdate(BaseModel):
    """Schema for updating an existing Portfolio. Ledger figures are not editable."""

    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=500)
    is_default: bool | None = None


class Portfolio(BaseModel):
    """Schema for Portfolio responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    broker_account_id: str | None = None
    name: str
    currency: str
    description: str | None = None
    current_balance: Decimal
    avg_buy_rate: Decimal
    total_invested: Decimal
    is_default: bool = False
    created_at: datetime
    updated_at: datetime


class PortfolioSummary(Portfolio):
    """Portfolio with broker info and, optionally, its value at the current rate."""

    broker: str = BrokerType.MANUAL
    account_alias: str | None = None
    transaction_count: int = 0
    current_rate: Decimal | None = None
    current_value: Decimal | None = None  # KRW
    profit_loss: Decimal | None = None  # KRW
    profit_loss_percent: Decimal | None = None


class PortfolioDetail(PortfolioSummary):
    recent_transactions: list[Transaction] = []
