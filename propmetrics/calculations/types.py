"""
Engine Input Types

Immutable views of a property's normalized financial records. The storage
layer builds these from ORM rows; the calculators only ever read them.

All money is Decimal. All rates are decimal fractions (0.08 for 8%).
"""

import enum
from datetime import date
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple, Union

ZERO = Decimal("0")
ONE = Decimal("1")
MONTHS_PER_YEAR = Decimal("12")


def to_decimal(value) -> Decimal:
    """
    Coerce a stored or user-supplied number to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion. None becomes zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class PropertyStatus(str, enum.Enum):
    """Lifecycle status of a property."""

    active = "Active"
    under_contract = "UnderContract"
    sold = "Sold"


class PaymentType(str, enum.Enum):
    """How a loan's monthly payment is computed."""

    amortizing = "amortizing"
    interest_only = "interestOnly"


@dataclass(frozen=True)
class PropertyRecord:
    """Property-level acquisition and disposition figures."""

    id: str
    status: PropertyStatus = PropertyStatus.active
    purchase_price: Decimal = ZERO
    rehab_cost: Decimal = ZERO
    sale_price: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None  # Realized profit recorded at sale
    years_held: Optional[Decimal] = None
    initial_capital_required: Optional[Decimal] = None  # Override, if known
    acquisition_date: Optional[date] = None
    name: str = ""


@dataclass(frozen=True)
class UnitType:
    """Unit template: bed/bath mix and a market rent."""

    id: str
    name: str = ""
    bedrooms: int = 0
    bathrooms: Decimal = ZERO
    market_rent: Decimal = ZERO  # Monthly
    unit_count: int = 0


@dataclass(frozen=True)
class RentRollUnit:
    """One physical unit on the rent roll."""

    unit: str
    is_occupied: bool = False
    current_rent: Decimal = ZERO  # Monthly
    pro_forma_rent: Decimal = ZERO  # Monthly
    unit_type_id: Optional[str] = None
    tenant_name: Optional[str] = None


@dataclass(frozen=True)
class OtherIncomeItem:
    """Recurring non-rent income (laundry, parking, ...)."""

    name: str
    annual_amount: Decimal = ZERO


@dataclass(frozen=True)
class FixedExpense:
    """Operating expense with a fixed annual amount."""

    name: str
    annual_amount: Decimal = ZERO
    category: Optional[str] = None


@dataclass(frozen=True)
class PercentageExpense:
    """Operating expense charged as a fraction of effective gross income."""

    name: str
    percentage_of_egi: Decimal = ZERO
    category: Optional[str] = None


ExpenseItem = Union[FixedExpense, PercentageExpense]


@dataclass(frozen=True)
class CostItem:
    """One-time cost line (rehab budget, closing or holding cost)."""

    name: str
    amount: Decimal = ZERO


@dataclass(frozen=True)
class LoanTerms:
    """Loan terms needed for debt service and leverage ratios."""

    id: str
    principal: Decimal = ZERO
    annual_rate: Decimal = ZERO
    term_years: int = 30
    payment_type: PaymentType = PaymentType.amortizing
    is_active: bool = False
    current_balance: Optional[Decimal] = None
    name: str = ""

    @property
    def outstanding_balance(self) -> Decimal:
        """Current balance, falling back to original principal."""
        if self.current_balance is None:
            return self.principal
        return self.current_balance


@dataclass(frozen=True)
class Assumptions:
    """Per-property underwriting assumptions."""

    vacancy_rate: Decimal = Decimal("0.05")
    management_fee_rate: Decimal = Decimal("0.08")
    market_cap_rate: Decimal = Decimal("0.055")
    loan_to_cost: Decimal = Decimal("0.75")
    hold_period_years: int = 5
    rehab_financed: bool = True
    dscr_threshold: Decimal = Decimal("1.15")


@dataclass(frozen=True)
class PropertySnapshot:
    """Everything the engine needs for one property, read at one point in time."""

    property: Optional[PropertyRecord]
    assumptions: Assumptions = field(default_factory=Assumptions)
    unit_types: Tuple[UnitType, ...] = ()
    rent_roll: Tuple[RentRollUnit, ...] = ()
    other_income: Tuple[OtherIncomeItem, ...] = ()
    expenses: Tuple[ExpenseItem, ...] = ()
    rehab_items: Tuple[CostItem, ...] = ()
    closing_costs: Tuple[CostItem, ...] = ()
    holding_costs: Tuple[CostItem, ...] = ()
    loans: Tuple[LoanTerms, ...] = ()
    version: int = 0
