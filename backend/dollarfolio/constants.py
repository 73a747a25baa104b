"""Application constants to avoid magic strings."""


class Currency:
    """Currency constants."""

    KRW = "KRW"  # Local (accounting) currency
    USD = "USD"
    EUR = "EUR"
    JPY = "JPY"
    CNY = "CNY"
    GBP = "GBP"

    SUPPORTED = (USD, EUR, JPY, CNY, GBP)


class TransactionType:
    """Ledger transaction types."""

    BUY = "BUY"
    SELL = "SELL"


class BrokerType:
    """Supported brokers."""

    HANA = "HANA"  # Hana Securities via local PC bridge
    KIS = "KIS"  # Korea Investment & Securities OpenAPI
    MANUAL = "MANUAL"  # Portfolio without a linked broker account


class AlertType:
    """Rate alert types."""

    TARGET_RATE = "TARGET_RATE"
    CHANGE_RATE = "CHANGE_RATE"
    DAILY = "DAILY"


class AlertDirection:
    """Direction for target rate alerts."""

    UP = "UP"
    DOWN = "DOWN"
