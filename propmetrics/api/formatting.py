"""
Display formatting for API responses.

The engine returns rates as decimal fractions. This is the one place they are
multiplied by 100 for display.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

NOT_AVAILABLE = "N/A"

PERCENT_FIELDS = (
    "cap_rate",
    "cap_rate_on_purchase",
    "cash_on_cash_return",
    "loan_to_value",
    "loan_to_cost",
    "debt_yield",
    "break_even_occupancy",
    "operating_expense_ratio",
    "annualized_return",
)
MULTIPLE_FIELDS = ("dscr", "equity_multiple", "projected_equity_multiple")
CURRENCY_FIELDS = (
    "gross_rental_income",
    "effective_gross_income",
    "total_operating_expenses",
    "net_operating_income",
    "annual_debt_service",
    "cash_flow",
    "arv",
    "total_invested_capital",
)


def _round(value: Decimal, decimals: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def format_percent(value: Optional[Decimal], decimals: int = 2) -> str:
    """0.0837 -> '8.37%'."""
    if value is None:
        return NOT_AVAILABLE
    return f"{_round(value * 100, decimals)}%"


def format_multiple(value: Optional[Decimal], decimals: int = 2) -> str:
    """1.3877 -> '1.39x'."""
    if value is None:
        return NOT_AVAILABLE
    return f"{_round(value, decimals)}x"


def format_currency(value: Optional[Decimal], symbol: str = "$") -> str:
    """-1234.5 -> '-$1,235'."""
    if value is None:
        return NOT_AVAILABLE
    rounded = _round(value, 0)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,}"


def display_metrics(values: Dict) -> Dict[str, str]:
    """Human-readable strings for the headline metrics."""
    display = {}
    for name in CURRENCY_FIELDS:
        display[name] = format_currency(values.get(name))
    for name in PERCENT_FIELDS:
        display[name] = format_percent(values.get(name))
    for name in MULTIPLE_FIELDS:
        display[name] = format_multiple(values.get(name))
    return display
