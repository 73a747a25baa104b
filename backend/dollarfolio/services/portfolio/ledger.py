"""Portfolio ledger arithmetic.

Pure functions over LedgerState. No rounding happens here; rounding is a
presentation concern.

Invariants maintained for any valid sequence of transactions:
- balance >= 0
- avg_buy_rate is the amount-weighted mean buy rate of the units held
- total_invested is the KRW principal still in the position; it shrinks in
  proportion to the units sold and is 0 when the balance is 0
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol, Self

from dollarfolio.constants import TransactionType
from dollarfolio.services.exceptions import InsufficientBalanceError, LedgerValidationError

ZERO = Decimal("0")


class LedgerEntry(Protocol):
    """Anything that looks like a stored transaction."""

    type: str
    amount: Decimal
    rate: Decimal
    fee: Decimal | None
    traded_at: datetime


@dataclass(frozen=True)
class LedgerState:
    balance: Decimal = ZERO
    avg_buy_rate: Decimal = ZERO
    total_invested: Decimal = ZERO

    @classmethod
    def of(cls, portfolio) -> Self:
        """Current state of a Portfolio row."""
        return cls(
            balance=Decimal(portfolio.current_balance or 0),
            avg_buy_rate=Decimal(portfolio.avg_buy_rate or 0),
            total_invested=Decimal(portfolio.total_invested or 0),
        )


def validate_figures(amount: Decimal, rate: Decimal, fee: Decimal = ZERO) -> None:
    """Reject non-positive amount or rate and negative fee."""
    if not (amount.is_finite() and rate.is_finite() and fee.is_finite()):
        raise LedgerValidationError("Amount, rate and fee must be finite numbers")
    if amount <= 0:
        raise LedgerValidationError("Amount must be greater than 0")
    if rate <= 0:
        raise LedgerValidationError("Rate must be greater than 0")
    if fee < 0:
        raise LedgerValidationError("Fee cannot be negative")


def apply_buy(state: LedgerState, amount: Decimal, rate: Decimal, fee: Decimal = ZERO) -> LedgerState:
    new_balance = state.balance + amount
    if new_balance == 0:
        new_avg = rate
    else:
        new_avg = (state.balance * state.avg_buy_rate + amount * rate) / new_balance

    return LedgerState(
        balance=new_balance,
        avg_buy_rate=new_avg,
        total_invested=state.total_invested + amount * rate + fee,
    )


def apply_sell(state: LedgerState, amount: Decimal) -> LedgerState:
    """Sell units at the current cost basis.

    Raises:
        InsufficientBalanceError: If amount exceeds the balance
    """
    if amount > state.balance:
        raise InsufficientBalanceError(amount, state.balance)

    new_balance = state.balance - amount
    if state.balance > 0:
        new_invested = state.total_invested * new_balance / state.balance
    else:
        new_invested = ZERO

    return LedgerState(
        balance=new_balance,
        avg_buy_rate=state.avg_buy_rate,
        total_invested=new_invested,
    )


def apply_transaction(
    state: LedgerState,
    transaction_type: str,
    amount: Decimal,
    rate: Decimal,
    fee: Decimal = ZERO,
) -> LedgerState:
    if transaction_type == TransactionType.BUY:
        return apply_buy(state, amount, rate, fee)
    if transaction_type == TransactionType.SELL:
        return apply_sell(state, amount)
    raise LedgerValidationError(f"Unknown transaction type: {transaction_type}")


def _trade_time(entry: LedgerEntry) -> datetime:
    traded_at = entry.traded_at
    if traded_at.tzinfo is None:
        return traded_at.replace(tzinfo=UTC)
    return traded_at


def replay(entries: Iterable[LedgerEntry]) -> LedgerState:
    """Rebuild state from scratch by applying entries in ascending trade time.

    The sort is stable, so entries sharing a trade time keep their input order.
    """
    state = LedgerState()
    for entry in sorted(entries, key=_trade_time):
        state = apply_transaction(
            state,
            entry.type,
            Decimal(entry.amount),
            Decimal(entry.rate),
            Decimal(entry.fee or 0),
        )
    return state
