"""Repository layer - data access abstraction.

Repositories handle all database queries, providing a clean interface
for services. Services should use repositories for data access rather
than directly querying SQLAlchemy models.

Dependency direction: Services -> Repositories -> Models
"""

from .broker_account_repository import BrokerAccountRepository
from .exceptions import DuplicateError, NotFoundError, RepositoryError
from .exchange_rate_repository import ExchangeRateRepository
from .portfolio_repository import PortfolioRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "BrokerAccountRepository",
    "DuplicateError",
    "ExchangeRateRepository",
    "NotFoundError",
    "PortfolioRepository",
    "RepositoryError",
    "TransactionRepository",
]
