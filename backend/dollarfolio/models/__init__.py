"""SQLAlchemy ORM models."""

from dollarfolio.models.alert import Alert, AlertLog
from dollarfolio.models.broker_account import BrokerAccount
from dollarfolio.models.exchange_rate import ExchangeRate
from dollarfolio.models.portfolio import Portfolio
from dollarfolio.models.transaction import Transaction
from dollarfolio.models.user import User

__all__ = [
    "Alert",
    "AlertLog",
    "BrokerAccount",
    "ExchangeRate",
    "Portfolio",
    "Transaction",
    "User",
]
