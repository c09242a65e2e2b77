"""
Property management API endpoints.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from propmetrics.api.dependencies import (
    get_metrics_service,
    get_property_or_404,
    get_repository,
)
from propmetrics.api.schemas import (
    MetricsResponse,
    as_float,
    metrics_to_response,
    raise_for_calculation_error,
)
from propmetrics.calculations.errors import CalculationError
from propmetrics.calculations.types import PaymentType, PropertyStatus
from propmetrics.db.models import Property
from propmetrics.db.repository import PropertyRepository
from propmetrics.services.metrics import MetricsService

router = APIRouter()

REQUIRED_PROPERTY_FIELDS = ("name", "status")


class PropertyCreate(BaseModel):
    """Schema for creating a property."""

    name: str
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_zip: Optional[str] = None
    status: PropertyStatus = PropertyStatus.active
    acquisition_date: Optional[date] = None
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    rehab_cost: Decimal = Field(default=Decimal("0"), ge=0)
    initial_capital_required: Optional[Decimal] = Field(default=None, ge=0)
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    sale_date: Optional[date] = None
    total_profit: Optional[Decimal] = None
    years_held: Optional[Decimal] = Field(default=None, ge=0)


class PropertyUpdate(BaseModel):
    """Schema for updating a property."""

    name: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_zip: Optional[str] = None
    status: Optional[PropertyStatus] = None
    acquisition_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(default=None, ge=0)
    rehab_cost: Optional[Decimal] = Field(default=None, ge=0)
    initial_capital_required: Optional[Decimal] = Field(default=None, ge=0)
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    sale_date: Optional[date] = None
    total_profit: Optional[Decimal] = None
    years_held: Optional[Decimal] = Field(default=None, ge=0)


class PropertyResponse(BaseModel):
    """Schema for property response."""

    id: str
    name: str
    address_street: Optional[str]
    address_city: Optional[str]
    address_state: Optional[str]
    address_zip: Optional[str]
    status: PropertyStatus
    acquisition_date: Optional[date]
    purchase_price: Optional[float]
    rehab_cost: Optional[float]
    initial_capital_required: Optional[float]
    sale_price: Optional[float]
    sale_date: Optional[date]
    total_profit: Optional[float]
    years_held: Optional[float]
    snapshot_version: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PropertyListResponse(BaseModel):
    """Response for listing properties."""

    properties: List[PropertyResponse]
    total: int


class AssumptionsUpdate(BaseModel):
    """Partial update of a property's assumptions. Rates are decimal fractions."""

    vacancy_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    management_fee_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    market_cap_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    loan_to_cost: Optional[Decimal] = Field(default=None, ge=0, le=1)
    hold_period_years: Optional[int] = Field(default=None, ge=0)
    rehab_financed: Optional[bool] = None
    dscr_threshold: Optional[Decimal] = Field(default=None, ge=0)


class AssumptionsResponse(BaseModel):
    property_id: str
    vacancy_rate: float
    management_fee_rate: float
    market_cap_rate: float
    loan_to_cost: float
    hold_period_years: int
    rehab_financed: bool
    dscr_threshold: float


class UnitTypeCreate(BaseModel):
    name: str
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: Decimal = Field(default=Decimal("0"), ge=0)
    market_rent: Decimal = Decimal("0")
    unit_count: int = 0


class RentRollUnitCreate(BaseModel):
    unit: str
    unit_type_id: Optional[str] = None
    is_occupied: bool = False
    current_rent: Decimal = Decimal("0")
    pro_forma_rent: Decimal = Decimal("0")
    square_footage: Optional[int] = None
    tenant_name: Optional[str] = None
    lease_start: Optional[date] = None
    lease_end: Optional[date] = None


class OtherIncomeCreate(BaseModel):
    name: str
    annual_amount: Decimal = Decimal("0")


class ExpenseCreate(BaseModel):
    """Either a fixed annual amount or, with is_percentage, a fraction of EGI."""

    name: str
    category: Optional[str] = None
    is_percentage: bool = False
    annual_amount: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    description: Optional[str] = None


class CostItemCreate(BaseModel):
    name: str
    amount: Decimal = Decimal("0")


class RehabItemCreate(CostItemCreate):
    category: Optional[str] = None
    completed: bool = False


class LoanCreate(BaseModel):
    name: Optional[str] = None
    loan_type: str = "acquisition"
    principal: Decimal
    annual_rate: Decimal
    term_years: int = 30
    payment_type: PaymentType = PaymentType.amortizing
    is_active: bool = False
    current_balance: Optional[Decimal] = None


class ChildCreatedResponse(BaseModel):
    id: str
    property_id: str
    kind: str
    snapshot_version: int


class MetricsHistoryEntry(BaseModel):
    computed_at: datetime
    snapshot_version: int
    net_operating_income: Optional[float]
    cash_flow: Optional[float]
    arv: Optional[float]
    cap_rate: Optional[float]
    cash_on_cash_return: Optional[float]
    dscr: Optional[float]
    loan_to_value: Optional[float]
    debt_yield: Optional[float]
    break_even_occupancy: Optional[float]
    equity_multiple: Optional[float]
    clamped_fields: List[str]


def property_to_response(prop: Property) -> PropertyResponse:
    """Convert Property model to response schema."""
    return PropertyResponse(
        id=prop.id,
        name=prop.name,
        address_street=prop.address_street,
        address_city=prop.address_city,
        address_state=prop.address_state,
        address_zip=prop.address_zip,
        status=prop.status,
        acquisition_date=prop.acquisition_date,
        purchase_price=as_float(prop.purchase_price),
        rehab_cost=as_float(prop.rehab_cost),
        initial_capital_required=as_float(prop.initial_capital_required),
        sale_price=as_float(prop.sale_price),
        sale_date=prop.sale_date,
        total_profit=as_float(prop.total_profit),
        years_held=as_float(prop.years_held),
        snapshot_version=prop.snapshot_version or 0,
        created_at=prop.created_at.isoformat() if prop.created_at else None,
        updated_at=prop.updated_at.isoformat() if prop.updated_at else None,
    )


def assumptions_to_response(row) -> AssumptionsResponse:
    return AssumptionsResponse(
        property_id=row.property_id,
        vacancy_rate=float(row.vacancy_rate),
        management_fee_rate=float(row.management_fee_rate),
        market_cap_rate=float(row.market_cap_rate),
        loan_to_cost=float(row.loan_to_cost),
        hold_period_years=row.hold_period_years,
        rehab_financed=row.rehab_financed,
        dscr_threshold=float(row.dscr_threshold),
    )


@router.get("/", response_model=PropertyListResponse)
async def list_properties(
    skip: int = 0,
    limit: int = 100,
    status: Optional[PropertyStatus] = None,
    repository: PropertyRepository = Depends(get_repository),
):
    """List all properties with optional status filtering."""
    properties, total = repository.list_properties(skip=skip, limit=limit, status=status)

    return PropertyListResponse(
        properties=[property_to_response(p) for p in properties],
        total=total,
    )


@router.post("/", response_model=PropertyResponse, status_code=201)
async def create_property(
    property_data: PropertyCreate,
    repository: PropertyRepository = Depends(get_repository),
):
    """Create a new property."""
    db_property = repository.create_property(**property_data.model_dump())
    return property_to_response(db_property)


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(db_property: Property = Depends(get_property_or_404)):
    """Get a property by ID."""
    return property_to_response(db_property)


@router.put("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_data: PropertyUpdate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Update a property."""
    # Update only provided fields; name and status cannot be cleared
    update_data = property_data.model_dump(exclude_unset=True)
    for name in REQUIRED_PROPERTY_FIELDS:
        if name in update_data and update_data[name] is None:
            del update_data[name]
    db_property = repository.update_property(db_property, update_data)
    service.invalidate(db_property.id)

    return property_to_response(db_property)


@router.delete("/{property_id}")
async def delete_property(
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Soft delete a property."""
    property_id = db_property.id
    repository.soft_delete(db_property)
    service.invalidate(property_id)

    return {"deleted": True, "id": property_id}


@router.get("/{property_id}/assumptions", response_model=AssumptionsResponse)
async def get_assumptions(
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
):
    """Get a property's assumptions, creating defaults on first access."""
    return assumptions_to_response(repository.get_or_create_assumptions(db_property.id))


@router.put("/{property_id}/assumptions", response_model=AssumptionsResponse)
async def update_assumptions(
    assumptions_data: AssumptionsUpdate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Update a property's assumptions."""
    row = repository.update_assumptions(
        db_property, assumptions_data.model_dump(exclude_none=True)
    )
    service.invalidate(db_property.id)
    return assumptions_to_response(row)


def _add_child(kind, payload, db_property, repository, service) -> ChildCreatedResponse:
    row = repository.add_child(db_property, kind, **payload.model_dump())
    service.invalidate(db_property.id)
    return ChildCreatedResponse(
        id=row.id,
        property_id=db_property.id,
        kind=kind,
        snapshot_version=db_property.snapshot_version,
    )


@router.post("/{property_id}/unit-types", response_model=ChildCreatedResponse, status_code=201)
async def add_unit_type(
    payload: UnitTypeCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Add a unit-type template."""
    return _add_child("unit_types", payload, db_property, repository, service)


@router.post("/{property_id}/units", response_model=ChildCreatedResponse, status_code=201)
async def add_rent_roll_unit(
    payload: RentRollUnitCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Add a unit to the rent roll."""
    return _add_child("units", payload, db_property, repository, service)


@router.post("/{property_id}/other-income", response_model=ChildCreatedResponse, status_code=201)
async def add_other_income(
    payload: OtherIncomeCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    return _add_child("other_income", payload, db_property, repository, service)


@router.post("/{property_id}/expenses", response_model=ChildCreatedResponse, status_code=201)
async def add_expense(
    payload: ExpenseCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Add an operating expense. Amounts are validated when metrics are computed."""
    return _add_child("expenses", payload, db_property, repository, service)


@router.post("/{property_id}/rehab-items", response_model=ChildCreatedResponse, status_code=201)
async def add_rehab_item(
    payload: RehabItemCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    return _add_child("rehab_items", payload, db_property, repository, service)


@router.post("/{property_id}/closing-costs", response_model=ChildCreatedResponse, status_code=201)
async def add_closing_cost(
    payload: CostItemCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    return _add_child("closing_costs", payload, db_property, repository, service)


@router.post("/{property_id}/holding-costs", response_model=ChildCreatedResponse, status_code=201)
async def add_holding_cost(
    payload: CostItemCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    return _add_child("holding_costs", payload, db_property, repository, service)


@router.post("/{property_id}/loans", response_model=ChildCreatedResponse, status_code=201)
async def add_loan(
    payload: LoanCreate,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
    service: MetricsService = Depends(get_metrics_service),
):
    """Add a loan. The loan flagged active carries the property's debt service."""
    return _add_child("loans", payload, db_property, repository, service)


@router.get("/{property_id}/metrics", response_model=MetricsResponse)
async def get_property_metrics(
    property_id: str,
    record: bool = False,
    service: MetricsService = Depends(get_metrics_service),
):
    """Compute the property's investment metrics, optionally recording them to history."""
    outcome = service.get_metrics(property_id, record=record)
    if isinstance(outcome, CalculationError):
        raise_for_calculation_error(outcome)
    return metrics_to_response(outcome)


@router.get("/{property_id}/metrics/history", response_model=List[MetricsHistoryEntry])
async def get_property_metrics_history(
    limit: int = 100,
    db_property: Property = Depends(get_property_or_404),
    repository: PropertyRepository = Depends(get_repository),
):
    """Recorded metrics, newest first."""
    rows = repository.list_metrics_history(db_property.id, limit=limit)
    return [
        MetricsHistoryEntry(
            computed_at=row.computed_at,
            snapshot_version=row.snapshot_version,
            net_operating_income=as_float(row.net_operating_income),
            cash_flow=as_float(row.cash_flow),
            arv=as_float(row.arv),
            cap_rate=as_float(row.cap_rate),
            cash_on_cash_return=as_float(row.cash_on_cash_return),
            dscr=as_float(row.dscr),
            loan_to_value=as_float(row.loan_to_value),
            debt_yield=as_float(row.debt_yield),
            break_even_occupancy=as_float(row.break_even_occupancy),
            equity_multiple=as_float(row.equity_multiple),
            clamped_fields=row.clamped_fields or [],
        )
        for row in rows
    ]
