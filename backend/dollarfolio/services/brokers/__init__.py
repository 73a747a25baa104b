"""Brokerage integrations."""

from .base import (
    BrokerAPIError,
    BrokerBalance,
    BrokerClient,
    BrokerOrder,
    OrderResult,
)

__all__ = [
    "BrokerAPIError",
    "BrokerBalance",
    "BrokerClient",
    "BrokerOrder",
    "OrderResult",
]
