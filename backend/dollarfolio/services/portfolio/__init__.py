"""Portfolio ledger: balance, average buy rate and invested principal."""

from .ledger import (
    LedgerState,
    apply_buy,
    apply_sell,
    apply_transaction,
    replay,
    validate_figures,
)
from .ledger_service import PortfolioLedgerService
from .valuation import value_portfolio

__all__ = [
    "LedgerState",
    "PortfolioLedgerService",
    "apply_buy",
    "apply_sell",
    "apply_transaction",
    "replay",
    "validate_figures",
    "value_portfolio",
]
