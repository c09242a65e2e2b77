"""
Operating Expense Calculations

Fixed items contribute their annual amount; percentage items contribute a
fraction of effective gross income. A management fee from the assumptions is
always added on top of the itemized expenses.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Sequence

from propmetrics.calculations.errors import require_fraction, require_non_negative
from propmetrics.calculations.types import (
    ZERO,
    Assumptions,
    ExpenseItem,
    FixedExpense,
    PercentageExpense,
)

logger = logging.getLogger(__name__)

EXPENSE_CATEGORIES = ("taxes", "insurance", "utilities", "maintenance", "management", "other")

# Checked in order; first match wins
_CATEGORY_KEYWORDS = (
    ("taxes", ("tax",)),
    ("insurance", ("insurance",)),
    ("utilities", ("utilit", "water", "electric", "gas", "sewer", "trash")),
    ("maintenance", ("maintenance", "repair")),
    ("management", ("management", "mgmt")),
)


@dataclass(frozen=True)
class ExpenseResult:
    """Annual operating expenses with a per-category breakdown."""

    itemized_expenses: Decimal
    management_fee: Decimal
    total_operating_expenses: Decimal
    breakdown: Dict[str, Decimal] = field(default_factory=dict)


def categorize_expense(name: str, category: Optional[str] = None) -> str:
    """Map an expense to a breakdown category, inferring it from the name if needed."""
    if category:
        normalized = category.strip().lower()
        if normalized in EXPENSE_CATEGORIES:
            return normalized

    lowered = (name or "").lower()
    for bucket, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return bucket
    return "other"


def expense_annual_amount(item: ExpenseItem, effective_gross_income: Decimal) -> Decimal:
    """Annual amount contributed by a single expense item."""
    if isinstance(item, PercentageExpense):
        percentage = require_fraction(
            f"expenses[{item.name}].percentage_of_egi", item.percentage_of_egi
        )
        return percentage * effective_gross_income
    if isinstance(item, FixedExpense):
        return require_non_negative(f"expenses[{item.name}].annual_amount", item.annual_amount)
    raise TypeError(f"Unsupported expense item: {item!r}")


def compute_expenses(
    expense_items: Sequence[ExpenseItem],
    effective_gross_income: Decimal,
    assumptions: Assumptions,
) -> ExpenseResult:
    """
    Compute total annual operating expenses.

    Args:
        expense_items: Fixed and percentage expense items
        effective_gross_income: Annual EGI the percentages apply to
        assumptions: Property assumptions (management fee rate)

    Returns:
        ExpenseResult; total is itemized expenses plus the management fee
    """
    fee_rate = require_fraction("assumptions.management_fee_rate", assumptions.management_fee_rate)

    breakdown = {category: ZERO for category in EXPENSE_CATEGORIES}
    itemized = ZERO
    for item in expense_items:
        amount = expense_annual_amount(item, effective_gross_income)
        itemized += amount
        breakdown[categorize_expense(item.name, item.category)] += amount

    management_fee = fee_rate * effective_gross_income
    breakdown["management"] += management_fee
    total = itemized + management_fee

    logger.debug(f"Expenses: itemized={itemized} management_fee={management_fee} total={total}")

    return ExpenseResult(
        itemized_expenses=itemized,
        management_fee=management_fee,
        total_operating_expenses=total,
        breakdown=breakdown,
    )
