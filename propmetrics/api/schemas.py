"""
Response schemas shared by several routers.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel

from propmetrics.api.formatting import display_metrics
from propmetrics.calculations.errors import CalculationError, InvalidInputError, MissingPropertyError
from propmetrics.calculations.metrics import MetricsResult


def as_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class MetricsResponse(BaseModel):
    """Computed property metrics. Ratios are decimal fractions; None means undefined."""

    property_id: str
    computed_at: datetime
    snapshot_version: int

    gross_rental_income: float
    vacancy_loss: float
    other_income_annual: float
    effective_gross_income: float
    management_fee: float
    total_operating_expenses: float
    net_operating_income: float
    monthly_debt_service: float
    annual_debt_service: float
    cash_flow: float
    monthly_cash_flow: float

    arv: float
    arv_basis: str
    total_invested_capital: float
    all_in_cost: float
    current_debt: float
    current_equity: float

    cap_rate: Optional[float] = None
    cap_rate_on_purchase: Optional[float] = None
    cash_on_cash_return: Optional[float] = None
    dscr: Optional[float] = None
    loan_to_value: Optional[float] = None
    loan_to_cost: Optional[float] = None
    debt_yield: Optional[float] = None
    break_even_occupancy: Optional[float] = None
    operating_expense_ratio: Optional[float] = None
    equity_multiple: Optional[float] = None
    projected_equity_multiple: Optional[float] = None
    annualized_return: Optional[float] = None

    dscr_warning: bool
    occupancy_risk: bool
    active_loan_id: Optional[str] = None
    expense_breakdown: Dict[str, float]
    warnings: List[str]
    display: Dict[str, str]


def metrics_to_response(result: MetricsResult) -> MetricsResponse:
    """Convert an engine result to its API shape."""
    data = result.to_dict()
    payload = {
        key: as_float(value) if isinstance(value, Decimal) else value
        for key, value in data.items()
    }
    payload["expense_breakdown"] = {
        category: float(amount) for category, amount in result.expense_breakdown.items()
    }
    payload["display"] = display_metrics(data)
    return MetricsResponse(**payload)


def raise_for_calculation_error(error: CalculationError) -> None:
    """Map an engine error value to an HTTP error."""
    if isinstance(error, MissingPropertyError):
        raise HTTPException(status_code=404, detail="Property not found")
    if isinstance(error, InvalidInputError):
        raise HTTPException(
            status_code=422,
            detail={"field": error.field, "detail": str(error)},
        )
    raise HTTPException(status_code=400, detail=str(error))
