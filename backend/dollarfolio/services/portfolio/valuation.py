"""Mark a portfolio to the current exchange rate."""

from decimal import Decimal

from dollarfolio.models import Portfolio


def value_portfolio(portfolio: Portfolio, rate: Decimal) -> dict[str, Decimal]:
    """KRW value and unrealised profit of a portfolio at the given rate.

    Returns:
        Dict with current_rate, current_value, profit_loss and profit_loss_percent
    """
    current_value = portfolio.current_balance * rate
    profit_loss = current_value - portfolio.total_invested
    if portfolio.total_invested > 0:
        profit_loss_percent = profit_loss / portfolio.total_invested * 100
    else:
        profit_loss_percent = Decimal("0")

    return {
        "current_rate": rate,
        "current_value": current_value,
        "profit_loss": profit_loss,
        "profit_loss_percent": profit_loss_percent,
    }
