"""
Calculation errors and warnings.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from propmetrics.calculations.types import ONE, ZERO


class CalculationError(Exception):
    """Base class for errors that prevent computing a property's metrics."""


class MissingPropertyError(CalculationError):
    """The snapshot carries no property record."""

    def __init__(self, property_id: Any = None):
        self.property_id = property_id
        message = "Property record missing from snapshot"
        if property_id is not None:
            message = f"Property {property_id} not found"
        super().__init__(message)


class InvalidInputError(CalculationError):
    """A numeric input is out of its valid range."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


@dataclass(frozen=True)
class AmbiguousLoanSelectionWarning:
    """No loan is flagged active and several exist; the first one was used."""

    selected_loan_id: str
    loan_count: int

    @property
    def message(self) -> str:
        return (
            f"No active loan flagged among {self.loan_count} loans; "
            f"using first loan {self.selected_loan_id}"
        )


def require_non_negative(field: str, value: Decimal) -> Decimal:
    """Reject negative amounts instead of summing them silently."""
    if value < ZERO:
        raise InvalidInputError(field, value, "must be non-negative")
    return value


def require_fraction(field: str, value: Decimal) -> Decimal:
    """Reject rates outside [0, 1] (e.g. 8 entered instead of 0.08)."""
    if value < ZERO or value > ONE:
        raise InvalidInputError(field, value, "must be a decimal fraction in [0, 1]")
    return value
