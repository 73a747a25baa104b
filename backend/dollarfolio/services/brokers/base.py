"""Common interface for brokerage clients.

Each supported broker implements BrokerClient so that order and balance
synchronisation is written once against this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal


@dataclass(frozen=True)
class BrokerOrder:
    """A filled currency order reported by a broker."""

    order_id: str
    type: str  # 'BUY' or 'SELL'
    currency: str
    amount: Decimal
    rate: Decimal  # KRW per unit
    ordered_at: datetime
    fee: Decimal = field(default_factory=lambda: Decimal("0"))
    status: str = "COMPLETED"
    raw_data: dict | None = field(default=None, compare=False)


@dataclass(frozen=True)
class BrokerBalance:
    """Foreign currency balance reported by a broker."""

    currency: str
    balance: Decimal
    available_balance: Decimal
    avg_buy_rate: Decimal | None = None
    total_value: Decimal | None = None
    profit_loss: Decimal = field(default_factory=lambda: Decimal("0"))
    profit_loss_percent: Decimal = field(default_factory=lambda: Decimal("0"))


@dataclass(frozen=True)
class OrderResult:
    """Outcome of placing an order."""

    success: bool
    order_id: str | None = None
    message: str = ""


class BrokerAPIError(Exception):
    """Exception raised when a broker rejects a request or cannot be reached."""

    def __init__(self, message: str, broker: str | None = None, code: str | None = None):
        super().__init__(message)
        self.broker = broker
        self.code = code


class BrokerClient(ABC):
    """Capability set shared by all brokers."""

    broker: str

    @abstractmethod
    def connect(self) -> None:
        """Establish or verify the session with the broker.

        Raises:
            BrokerAPIError: If the broker cannot be reached or rejects the credentials
        """

    @abstractmethod
    def get_balance(self) -> list[BrokerBalance]:
        """Fetch foreign currency balances.

        Raises:
            BrokerAPIError: On any broker failure
        """

    @abstractmethod
    def list_orders(self, start: date, end: date) -> list[BrokerOrder]:
        """Fetch filled orders in the inclusive date range.

        Raises:
            BrokerAPIError: On any broker failure
        """
