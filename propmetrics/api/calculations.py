"""
Stateless calculation API endpoints.

These endpoints accept inputs inline and return calculated results without
touching storage.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from propmetrics.api.schemas import MetricsResponse, metrics_to_response, raise_for_calculation_error
from propmetrics.calculations import amortization
from propmetrics.calculations.errors import CalculationError, InvalidInputError
from propmetrics.calculations.metrics import calculate_metrics
from propmetrics.calculations.types import (
    Assumptions,
    CostItem,
    FixedExpense,
    LoanTerms,
    OtherIncomeItem,
    PaymentType,
    PercentageExpense,
    PropertyRecord,
    PropertySnapshot,
    PropertyStatus,
    RentRollUnit,
    UnitType,
    to_decimal,
)
from propmetrics.config import get_settings

router = APIRouter()


class PropertyInput(BaseModel):
    id: str = "inline"
    name: str = ""
    status: PropertyStatus = PropertyStatus.active
    purchase_price: Decimal = Decimal("0")
    rehab_cost: Decimal = Decimal("0")
    sale_price: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None
    years_held: Optional[Decimal] = None
    initial_capital_required: Optional[Decimal] = None
    acquisition_date: Optional[date] = None


class AssumptionsInput(BaseModel):
    """Rates as decimal fractions; omitted fields use the configured defaults."""

    vacancy_rate: Optional[Decimal] = None
    management_fee_rate: Optional[Decimal] = None
    market_cap_rate: Optional[Decimal] = None
    loan_to_cost: Optional[Decimal] = None
    hold_period_years: Optional[int] = None
    rehab_financed: Optional[bool] = None
    dscr_threshold: Optional[Decimal] = None


class UnitTypeInput(BaseModel):
    id: str
    name: str = ""
    market_rent: Decimal = Decimal("0")
    unit_count: int = 0


class RentRollUnitInput(BaseModel):
    unit: str
    is_occupied: bool = False
    current_rent: Decimal = Decimal("0")
    pro_forma_rent: Decimal = Decimal("0")
    unit_type_id: Optional[str] = None


class OtherIncomeInput(BaseModel):
    name: str
    annual_amount: Decimal = Decimal("0")


class ExpenseInput(BaseModel):
    name: str
    category: Optional[str] = None
    is_percentage: bool = False
    annual_amount: Optional[Decimal] = None
    percentage: Optional[Decimal] = None


class CostItemInput(BaseModel):
    name: str
    amount: Decimal = Decimal("0")


class LoanInput(BaseModel):
    id: Optional[str] = None
    principal: Decimal
    annual_rate: Decimal
    term_years: int = 30
    payment_type: PaymentType = PaymentType.amortizing
    is_active: bool = False
    current_balance: Optional[Decimal] = None


class SnapshotInput(BaseModel):
    """Inline property snapshot for what-if evaluation."""

    property: PropertyInput
    assumptions: AssumptionsInput = Field(default_factory=AssumptionsInput)
    unit_types: List[UnitTypeInput] = []
    rent_roll: List[RentRollUnitInput] = []
    other_income: List[OtherIncomeInput] = []
    expenses: List[ExpenseInput] = []
    rehab_items: List[CostItemInput] = []
    closing_costs: List[CostItemInput] = []
    holding_costs: List[CostItemInput] = []
    loans: List[LoanInput] = []


def build_assumptions(data: AssumptionsInput) -> Assumptions:
    settings = get_settings()
    values = {
        "vacancy_rate": settings.default_vacancy_rate,
        "management_fee_rate": settings.default_management_fee_rate,
        "market_cap_rate": settings.default_market_cap_rate,
        "loan_to_cost": settings.default_loan_to_cost,
        "hold_period_years": settings.default_hold_period_years,
        "rehab_financed": settings.default_rehab_financed,
        "dscr_threshold": settings.default_dscr_threshold,
    }
    values.update(data.model_dump(exclude_none=True))
    return Assumptions(**values)


def build_snapshot(data: SnapshotInput) -> PropertySnapshot:
    """Convert the request body into an engine snapshot."""
    expenses = []
    for item in data.expenses:
        if item.is_percentage:
            if item.percentage is None:
                raise InvalidInputError(
                    f"expenses[{item.name}].percentage", None, "required for a percentage expense"
                )
            expenses.append(PercentageExpense(item.name, item.percentage, item.category))
        else:
            expenses.append(
                FixedExpense(item.name, to_decimal(item.annual_amount), item.category)
            )

    return PropertySnapshot(
        property=PropertyRecord(**data.property.model_dump()),
        assumptions=build_assumptions(data.assumptions),
        unit_types=tuple(UnitType(**u.model_dump()) for u in data.unit_types),
        rent_roll=tuple(RentRollUnit(**u.model_dump()) for u in data.rent_roll),
        other_income=tuple(OtherIncomeItem(**i.model_dump()) for i in data.other_income),
        expenses=tuple(expenses),
        rehab_items=tuple(CostItem(**c.model_dump()) for c in data.rehab_items),
        closing_costs=tuple(CostItem(**c.model_dump()) for c in data.closing_costs),
        holding_costs=tuple(CostItem(**c.model_dump()) for c in data.holding_costs),
        loans=tuple(
            LoanTerms(**{**loan.model_dump(), "id": loan.id or f"loan-{index + 1}"})
            for index, loan in enumerate(data.loans)
        ),
    )


@router.post("/metrics", response_model=MetricsResponse)
async def calculate_snapshot_metrics(inputs: SnapshotInput):
    """Calculate metrics for an inline property snapshot."""
    try:
        snapshot = build_snapshot(inputs)
    except CalculationError as e:
        raise_for_calculation_error(e)

    outcome = calculate_metrics(
        snapshot,
        computed_at=datetime.utcnow(),
        occupancy_risk_threshold=get_settings().occupancy_risk_threshold,
    )
    if isinstance(outcome, CalculationError):
        raise_for_calculation_error(outcome)
    return metrics_to_response(outcome)


class AmortizationInput(BaseModel):
    """Input for amortization calculation."""

    principal: Decimal = Field(ge=0)
    annual_rate: Decimal = Field(ge=0, le=1)
    term_years: int = Field(default=30, gt=0)
    payment_type: PaymentType = PaymentType.amortizing
    total_months: Optional[int] = Field(default=None, gt=0)
    start_date: Optional[date] = None


@router.post("/amortization")
async def calculate_amortization(inputs: AmortizationInput):
    """Generate loan amortization schedule."""
    schedule = amortization.generate_amortization_schedule(
        principal=inputs.principal,
        annual_rate=inputs.annual_rate,
        term_years=inputs.term_years,
        payment_type=inputs.payment_type,
        total_months=inputs.total_months,
        start_date=inputs.start_date,
    )
    monthly_payment = amortization.calculate_monthly_payment(
        inputs.principal, inputs.annual_rate, inputs.term_years, inputs.payment_type
    )

    return {
        "monthly_payment": float(amortization.quantize_money(monthly_payment)),
        "schedule": [
            {key: float(value) if isinstance(value, Decimal) else value for key, value in row.items()}
            for row in schedule
        ],
        "total_interest": float(amortization.calculate_total_interest(schedule)),
        "total_principal": float(sum((row["principal"] for row in schedule), Decimal("0"))),
    }
