"""
Property Metrics

Combines the income, expense, debt and valuation calculators into a single
MetricsResult. This is the only place investment ratios are computed.

Unit conventions:
    - Money is Decimal.
    - Rates and returns are decimal fractions (0.0837 for 8.37%). Nothing here
      multiplies by 100; that happens only when formatting for display.
    - A ratio whose denominator is zero is None ("undefined"), never 0 or inf.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple, Union

from propmetrics.calculations.debt import DebtResult, compute_debt_service
from propmetrics.calculations.errors import (
    AmbiguousLoanSelectionWarning,
    CalculationError,
    MissingPropertyError,
    require_non_negative,
)
from propmetrics.calculations.expenses import ExpenseResult, compute_expenses
from propmetrics.calculations.income import IncomeResult, compute_income
from propmetrics.calculations.types import (
    MONTHS_PER_YEAR,
    ZERO,
    Assumptions,
    CostItem,
    PropertyRecord,
    PropertySnapshot,
    PropertyStatus,
    to_decimal,
)
from propmetrics.calculations.valuation import ValuationResult, compute_valuation

logger = logging.getLogger(__name__)

# Largest ratio a Numeric(8, 4) column can hold (999.99%)
DEFAULT_RATIO_LIMIT = Decimal("9.9999")
DEFAULT_OCCUPANCY_RISK_THRESHOLD = Decimal("0.90")
DAYS_PER_YEAR = Decimal("365.25")

RATIO_FIELDS = (
    "cap_rate",
    "cap_rate_on_purchase",
    "cash_on_cash_return",
    "dscr",
    "loan_to_value",
    "loan_to_cost",
    "debt_yield",
    "break_even_occupancy",
    "operating_expense_ratio",
    "equity_multiple",
    "projected_equity_multiple",
    "annualized_return",
)


def safe_divide(numerator: Decimal, denominator: Decimal) -> Optional[Decimal]:
    """Divide, returning None when the denominator is zero."""
    if denominator == ZERO:
        return None
    return numerator / denominator


def clamp_ratio(value: Optional[Decimal], limit: Decimal = DEFAULT_RATIO_LIMIT) -> Optional[Decimal]:
    """Bound a ratio to [-limit, limit] for fixed-width storage."""
    if value is None:
        return None
    return max(-limit, min(limit, value))


@dataclass(frozen=True)
class MetricsResult:
    """Derived metrics for one property. Always recomputed, never an input."""

    property_id: str
    computed_at: datetime
    snapshot_version: int

    # Income
    gross_rental_income: Decimal
    vacancy_loss: Decimal
    other_income_annual: Decimal
    effective_gross_income: Decimal

    # Expenses
    management_fee: Decimal
    total_operating_expenses: Decimal

    # Operations
    net_operating_income: Decimal
    monthly_debt_service: Decimal
    annual_debt_service: Decimal
    cash_flow: Decimal

    # Valuation
    arv: Decimal
    arv_basis: str
    total_invested_capital: Decimal
    all_in_cost: Decimal
    current_debt: Decimal
    current_equity: Decimal

    # Ratios (decimal fractions; None = undefined)
    cap_rate: Optional[Decimal]
    cap_rate_on_purchase: Optional[Decimal]
    cash_on_cash_return: Optional[Decimal]
    dscr: Optional[Decimal]
    loan_to_value: Optional[Decimal]
    loan_to_cost: Optional[Decimal]
    debt_yield: Optional[Decimal]
    break_even_occupancy: Optional[Decimal]
    operating_expense_ratio: Optional[Decimal]
    equity_multiple: Optional[Decimal]
    projected_equity_multiple: Optional[Decimal]
    annualized_return: Optional[Decimal]

    # Risk flags
    dscr_warning: bool = False
    occupancy_risk: bool = False

    active_loan_id: Optional[str] = None
    expense_breakdown: Dict[str, Decimal] = field(default_factory=dict)
    warnings: Tuple[AmbiguousLoanSelectionWarning, ...] = ()

    @property
    def monthly_gross_rent(self) -> Decimal:
        return self.gross_rental_income / MONTHS_PER_YEAR

    @property
    def monthly_noi(self) -> Decimal:
        return self.net_operating_income / MONTHS_PER_YEAR

    @property
    def monthly_cash_flow(self) -> Decimal:
        return self.cash_flow / MONTHS_PER_YEAR

    def ratios(self) -> Dict[str, Optional[Decimal]]:
        """Unclamped ratio values."""
        return {name: getattr(self, name) for name in RATIO_FIELDS}

    def clamped_ratios(self, limit: Decimal = DEFAULT_RATIO_LIMIT):
        """
        Ratios bounded for storage.

        Returns:
            Tuple of (clamped ratio dict, names of ratios that were clamped)
        """
        clamped = {}
        out_of_range = []
        for name, value in self.ratios().items():
            bounded = clamp_ratio(value, limit)
            if bounded != value:
                out_of_range.append(name)
            clamped[name] = bounded
        if out_of_range:
            logger.warning(
                f"Property {self.property_id}: ratios clamped for storage: {', '.join(out_of_range)}"
            )
        return clamped, out_of_range

    def to_dict(self) -> Dict:
        """Plain dict of all fields, warnings rendered as messages."""
        data = asdict(self)
        data["warnings"] = [warning.message for warning in self.warnings]
        data["monthly_gross_rent"] = self.monthly_gross_rent
        data["monthly_noi"] = self.monthly_noi
        data["monthly_cash_flow"] = self.monthly_cash_flow
        return data


def sum_costs(field_name: str, items: Sequence[CostItem]) -> Decimal:
    """Total of one-time cost items."""
    return sum(
        (require_non_negative(f"{field_name}[{item.name}].amount", item.amount) for item in items),
        ZERO,
    )


def years_since(start: Optional[date], as_of: Optional[datetime]) -> Decimal:
    """Fractional years from start to as_of; zero when unknown or in the future."""
    if start is None or as_of is None:
        return ZERO
    days = (as_of.date() - start).days
    if days <= 0:
        return ZERO
    return Decimal(days) / DAYS_PER_YEAR


def calculate_equity_multiples(
    prop: PropertyRecord,
    assumptions: Assumptions,
    valuation: ValuationResult,
    cash_flow: Decimal,
    current_debt: Decimal,
    computed_at: Optional[datetime] = None,
):
    """
    Equity multiple, projected equity multiple and annualized return.

    Sold: realized profit over initial capital (the recorded override, else the
    computed invested capital). Annualized return is that multiple per year held.

    Not sold: equity at ARV plus cash flow collected so far, per dollar
    invested. Time held is the recorded years_held, else the time since the
    acquisition date. The projected multiple uses the assumed hold period.

    Returns:
        Tuple of (equity_multiple, projected_equity_multiple, annualized_return)
    """
    if prop.years_held is not None:
        require_non_negative("property.years_held", prop.years_held)
    if prop.initial_capital_required is not None:
        require_non_negative("property.initial_capital_required", prop.initial_capital_required)

    if prop.status == PropertyStatus.sold:
        capital = prop.initial_capital_required
        if capital is None or capital == ZERO:
            capital = valuation.total_invested_capital
        total_profit = prop.total_profit
        if total_profit is None:
            total_profit = valuation.arv - valuation.all_in_cost
        multiple = safe_divide(total_profit, capital)

        annualized = None
        years_held = prop.years_held or ZERO
        if multiple is not None and years_held > ZERO:
            annualized = multiple / years_held
        return multiple, None, annualized

    equity = valuation.arv - current_debt
    years_held = prop.years_held
    if years_held is None:
        years_held = years_since(prop.acquisition_date, computed_at)
    invested = valuation.total_invested_capital
    multiple = safe_divide(equity + cash_flow * years_held, invested)
    projected = safe_divide(equity + cash_flow * assumptions.hold_period_years, invested)
    return multiple, projected, None


def aggregate(
    income: IncomeResult,
    expenses: ExpenseResult,
    debt: DebtResult,
    valuation: ValuationResult,
    prop: PropertyRecord,
    assumptions: Optional[Assumptions] = None,
    computed_at: Optional[datetime] = None,
    snapshot_version: int = 0,
    occupancy_risk_threshold: Decimal = DEFAULT_OCCUPANCY_RISK_THRESHOLD,
) -> MetricsResult:
    """
    Combine calculator outputs into the full metrics record.

    NOI must already have been used to compute the valuation; this function
    recomputes it from the same income and expense figures.
    """
    if assumptions is None:
        assumptions = Assumptions()
    if computed_at is None:
        computed_at = datetime.utcnow()

    noi = income.effective_gross_income - expenses.total_operating_expenses
    cash_flow = noi - debt.annual_debt_service
    current_debt = debt.current_debt
    loan_principal = debt.active_loan.principal if debt.active_loan else ZERO

    dscr = safe_divide(noi, debt.annual_debt_service)
    break_even = safe_divide(
        expenses.total_operating_expenses + debt.annual_debt_service,
        income.gross_rental_income,
    )
    equity_multiple, projected_multiple, annualized = calculate_equity_multiples(
        prop, assumptions, valuation, cash_flow, current_debt, computed_at
    )

    return MetricsResult(
        property_id=prop.id,
        computed_at=computed_at,
        snapshot_version=snapshot_version,
        gross_rental_income=income.gross_rental_income,
        vacancy_loss=income.vacancy_loss,
        other_income_annual=income.other_income_annual,
        effective_gross_income=income.effective_gross_income,
        management_fee=expenses.management_fee,
        total_operating_expenses=expenses.total_operating_expenses,
        net_operating_income=noi,
        monthly_debt_service=debt.monthly_payment,
        annual_debt_service=debt.annual_debt_service,
        cash_flow=cash_flow,
        arv=valuation.arv,
        arv_basis=valuation.arv_basis.value,
        total_invested_capital=valuation.total_invested_capital,
        all_in_cost=valuation.all_in_cost,
        current_debt=current_debt,
        current_equity=valuation.arv - current_debt,
        cap_rate=safe_divide(noi, valuation.arv),
        cap_rate_on_purchase=safe_divide(noi, prop.purchase_price),
        cash_on_cash_return=safe_divide(cash_flow, valuation.total_invested_capital),
        dscr=dscr,
        loan_to_value=safe_divide(current_debt, valuation.arv),
        loan_to_cost=safe_divide(loan_principal, valuation.all_in_cost),
        debt_yield=safe_divide(noi, current_debt),
        break_even_occupancy=break_even,
        operating_expense_ratio=safe_divide(
            expenses.total_operating_expenses, income.effective_gross_income
        ),
        equity_multiple=equity_multiple,
        projected_equity_multiple=projected_multiple,
        annualized_return=annualized,
        dscr_warning=dscr is not None and dscr < assumptions.dscr_threshold,
        occupancy_risk=break_even is not None and break_even > occupancy_risk_threshold,
        active_loan_id=debt.active_loan.id if debt.active_loan else None,
        expense_breakdown=dict(expenses.breakdown),
        warnings=tuple(debt.warnings),
    )


def evaluate(
    snapshot: PropertySnapshot,
    computed_at: Optional[datetime] = None,
    occupancy_risk_threshold: Decimal = DEFAULT_OCCUPANCY_RISK_THRESHOLD,
) -> MetricsResult:
    """
    Run every calculator over a snapshot.

    Raises:
        MissingPropertyError: If the snapshot has no property record
        InvalidInputError: If any input is out of range
    """
    prop = snapshot.property
    if prop is None:
        raise MissingPropertyError()

    assumptions = snapshot.assumptions

    income = compute_income(
        snapshot.rent_roll, snapshot.unit_types, snapshot.other_income, assumptions
    )
    expenses = compute_expenses(snapshot.expenses, income.effective_gross_income, assumptions)
    debt = compute_debt_service(snapshot.loans)

    if snapshot.rehab_items:
        rehab_total = sum_costs("rehab_items", snapshot.rehab_items)
    else:
        rehab_total = require_non_negative("property.rehab_cost", to_decimal(prop.rehab_cost))

    valuation = compute_valuation(
        income.effective_gross_income - expenses.total_operating_expenses,
        assumptions,
        prop,
        rehab_total,
        sum_costs("closing_costs", snapshot.closing_costs),
        sum_costs("holding_costs", snapshot.holding_costs),
    )

    return aggregate(
        income,
        expenses,
        debt,
        valuation,
        prop,
        assumptions=assumptions,
        computed_at=computed_at,
        snapshot_version=snapshot.version,
        occupancy_risk_threshold=occupancy_risk_threshold,
    )


def calculate_metrics(
    snapshot: PropertySnapshot,
    computed_at: Optional[datetime] = None,
    occupancy_risk_threshold: Decimal = DEFAULT_OCCUPANCY_RISK_THRESHOLD,
) -> Union[MetricsResult, CalculationError]:
    """
    Compute metrics for a property snapshot.

    Input errors are returned, not raised, so a batch of properties can be
    evaluated without one bad record aborting the rest.

    Args:
        snapshot: Consistent read of a property and all its child records
        computed_at: Timestamp to stamp on the result (defaults to now, UTC)
        occupancy_risk_threshold: Break-even occupancy above which to flag risk

    Returns:
        MetricsResult on success, otherwise the CalculationError describing why
    """
    try:
        return evaluate(snapshot, computed_at, occupancy_risk_threshold)
    except CalculationError as e:
        prop_id = snapshot.property.id if snapshot.property else None
        logger.info(f"Metrics not computed for property {prop_id}: {e}")
        return e


def collect_warnings(results: Sequence[MetricsResult]) -> List[AmbiguousLoanSelectionWarning]:
    """Flatten warnings across several results."""
    return [warning for result in results for warning in result.warnings]
