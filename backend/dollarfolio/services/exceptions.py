"""Service-level exceptions.

Routers translate these into HTTP errors with short user-facing messages.
"""

from decimal import Decimal


class ServiceError(Exception):
    """Base exception for service operations."""


class BusinessRuleError(ServiceError):
    """Request is well-formed but violates a business rule."""


class LedgerValidationError(ServiceError):
    """Transaction figures are out of range (non-positive amount or rate, negative fee)."""


class InsufficientBalanceError(BusinessRuleError):
    """Sell amount exceeds the units currently held."""

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient balance: requested {requested}, available {available}")
