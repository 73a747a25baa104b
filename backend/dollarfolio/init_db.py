"""Database initialization script with seed data."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from dollarfolio.constants import Currency, TransactionType
from dollarfolio.database import Base, SessionLocal, engine
from dollarfolio.models import ExchangeRate, Portfolio, User
from dollarfolio.services.auth_service import AuthService
from dollarfolio.services.market_data import DEFAULT_RATES
from dollarfolio.services.portfolio import PortfolioLedgerService


def create_tables():
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")


def seed_data(db: Session):
    """Seed the database with a demo user, a portfolio and a week of rates."""
    print("\nSeeding database with sample data...")

    print("Creating user...")
    user = User(email="demo@example.com", name="Demo User", is_active=True)
    db.add(user)
    db.flush()

    print("Creating portfolio...")
    portfolio = Portfolio(
        user_id=user.id,
        name="My Dollars",
        currency=Currency.USD,
        description="Manual USD savings",
        is_default=True,
    )
    db.add(portfolio)
    db.commit()

    print("Creating exchange rates...")
    now = datetime.now(UTC)
    for days_ago in range(7, 0, -1):
        for currency, rate in DEFAULT_RATES.items():
            db.add(
                ExchangeRate(
                    currency=currency,
                    rate=rate,
                    change=Decimal("0"),
                    change_percent=Decimal("0"),
                    high=rate,
                    low=rate,
                    timestamp=now - timedelta(days=days_ago),
                )
            )
    db.commit()

    print("Creating transactions...")
    ledger = PortfolioLedgerService(db)
    ledger.record_transaction(
        portfolio,
        TransactionType.BUY,
        Decimal("1000"),
        Decimal("1320.50"),
        memo="First purchase",
        traded_at=now - timedelta(days=6),
    )
    ledger.record_transaction(
        portfolio,
        TransactionType.BUY,
        Decimal("500"),
        Decimal("1348.20"),
        Decimal("1500"),
        traded_at=now - timedelta(days=3),
    )
    ledger.record_transaction(
        portfolio,
        TransactionType.SELL,
        Decimal("200"),
        Decimal("1361.00"),
        traded_at=now - timedelta(days=1),
    )

    print("Seed data created successfully!")
    print(f"  User: {user.email}")
    print(f"  Portfolio: {portfolio.name} ({portfolio.current_balance} {portfolio.currency})")
    print(f"  Access token (1 day): {AuthService.create_access_token(user.id, timedelta(days=1))}")


def init_db():
    """Initialize database with tables and seed data."""
    print("Initializing database...")

    create_tables()

    db = SessionLocal()
    try:
        existing_users = db.query(User).count()
        if existing_users > 0:
            print(f"\nDatabase already has {existing_users} users. Skipping seed data.")
            return

        seed_data(db)
        print("\nDatabase initialization complete!")

    except Exception as e:
        print(f"\nError during database initialization: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
