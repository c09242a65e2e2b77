"""
Property Financial Calculation Engine

Pure, synchronous calculators for real estate investment metrics.
Money is Decimal; rates are decimal fractions.
"""

from propmetrics.calculations import amortization, debt, expenses, income, metrics, valuation
from propmetrics.calculations.errors import (
    AmbiguousLoanSelectionWarning,
    CalculationError,
    InvalidInputError,
    MissingPropertyError,
)
from propmetrics.calculations.metrics import MetricsResult, calculate_metrics

__all__ = [
    "amortization",
    "debt",
    "expenses",
    "income",
    "metrics",
    "valuation",
    "AmbiguousLoanSelectionWarning",
    "CalculationError",
    "InvalidInputError",
    "MissingPropertyError",
    "MetricsResult",
    "calculate_metrics",
]
