"""Shared test fixtures.

Every test runs against an in-memory SQLite database. The API client
overrides get_db and the exchange rate service so nothing leaves the process.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["KOREA_EXIM_API_KEY"] = ""

from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dollarfolio.database import Base, get_db
from dollarfolio.dependencies.services import get_exchange_rate_service
from dollarfolio.main import app
from dollarfolio.models import Portfolio, User
from dollarfolio.rate_limiter import limiter
from dollarfolio.services.auth_service import AuthService
from dollarfolio.services.market_data import (
    ExchangeRateService,
    ExpiringCache,
    RateQuote,
    RateSource,
    build_quote,
)

FIXED_NOW = datetime(2024, 6, 3, 9, 0, tzinfo=UTC)

FIXED_RATES = {
    "USD": Decimal("1380.50"),
    "EUR": Decimal("1495.20"),
    "JPY": Decimal("8.85"),
    "CNY": Decimal("190.10"),
    "GBP": Decimal("1752.30"),
}


class StaticRateSource(RateSource):
    """Rate source returning fixed quotes, or None when marked down."""

    name = "static"

    def __init__(self, rates: Mapping[str, Decimal] | None = None, down: bool = False):
        self.rates = dict(FIXED_RATES if rates is None else rates)
        self.down = down
        self.calls = 0

    def fetch_rates(self, previous_rates: Mapping[str, Decimal]) -> list[RateQuote] | None:
        self.calls += 1
        if self.down:
            return None
        return [
            build_quote(currency, rate, previous_rates.get(currency), FIXED_NOW, self.name)
            for currency, rate in self.rates.items()
        ]


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    """Database session for direct service and repository tests."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def rate_source() -> StaticRateSource:
    return StaticRateSource()


@pytest.fixture
def rate_service(rate_source) -> ExchangeRateService:
    return ExchangeRateService(
        cache=ExpiringCache(ttl_seconds=300),
        sources=[rate_source],
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def client(session_factory, rate_service):
    """Test client with database and rate service overrides."""
    limiter.reset()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_exchange_rate_service] = lambda: rate_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db) -> User:
    """Create a test user."""
    user = User(email="test@example.com", name="Test User", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db) -> User:
    """A second user whose data must stay invisible to test_user."""
    user = User(email="other@example.com", name="Other User", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user) -> dict[str, str]:
    """Get authorization headers for test user."""
    token = AuthService.create_access_token(user_id=test_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_client(client, auth_headers) -> TestClient:
    """Client with authentication headers."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def test_portfolio(db, test_user) -> Portfolio:
    """Empty default USD portfolio."""
    portfolio = Portfolio(
        user_id=test_user.id,
        name="My Dollars",
        currency="USD",
        is_default=True,
    )
    db.add(portfolio)
    db.commit()
    db.refresh(portfolio)
    return portfolio
