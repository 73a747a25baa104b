"""Pydantic schemas for broker accounts and bridge operations."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BrokerAccount(BaseModel):
    """Broker account response. Credentials are never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    broker: str
    account_no: str
    account_alias: str | None = None
    last_sync_at: datetime | None = None
    is_active: bool
    created_at: datetime


class BridgeStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    connected: bool
    hana_connected: bool
    version: str | None = None


class OperationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    message: str


class HanaConnectRequest(BaseModel):
    account_no: str = Field(..., min_length=1, max_length=30)
    account_alias: str | None = Field(None, max_length=50)


class KISConnectRequest(BaseModel):
    app_key: str = Field(..., min_length=1)
    app_secret: str = Field(..., min_length=1)
    account_no: str = Field(..., min_length=1, max_length=30)
    account_alias: str | None = Field(None, max_length=50)


class ConnectResponse(BaseModel):
    success: bool = True
    broker_account_id: str
    message: str


class BrokerAccountRequest(BaseModel):
    broker_account_id: str


class SyncRequest(BaseModel):
    broker_account_id: str
    start_date: date | None = None
    end_date: date | None = None


class BrokerBalance(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    currency: str
    balance: Decimal
    available_balance: Decimal
    avg_buy_rate: Decimal | None = None
    total_value: Decimal | None = None
    profit_loss: Decimal
    profit_loss_percent: Decimal


class BalanceResponse(BaseModel):
    balances: list[BrokerBalance]


class HanaOrderRequest(BaseModel):
    broker_account_id: str
    type: Literal["BUY", "SELL"]
    amount: Decimal = Field(..., gt=0)
    rate: Decimal | None = Field(None, gt=0, description="Limit rate; omit for market order")
    password: str | None = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    order_id: str | None = None
    message: str


class SyncResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    synced_count: int
    skipped_count: int
    total_orders: int
    balance_synced: bool
    balances: list[BrokerBalance]
    errors: list[str]
    message: str
