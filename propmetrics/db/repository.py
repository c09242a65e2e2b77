"""
Property repository.

Reads a property and all of its child records in one session and converts
them to immutable engine views. Every write bumps the property's
snapshot_version so cached metrics keyed by version go stale immediately.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from propmetrics.calculations.errors import InvalidInputError
from propmetrics.calculations.metrics import MetricsResult
from propmetrics.calculations.types import (
    Assumptions,
    CostItem,
    FixedExpense,
    LoanTerms,
    OtherIncomeItem as OtherIncomeView,
    PercentageExpense,
    PropertyRecord,
    PropertySnapshot,
    RentRollUnit as RentRollView,
    UnitType as UnitTypeView,
    to_decimal,
)
from propmetrics.config import Settings, get_settings
from propmetrics.db.models import (
    ClosingCostItem,
    ExpenseItem,
    HoldingCostItem,
    Loan,
    MetricsHistory,
    OtherIncomeItem,
    Property,
    PropertyAssumptions,
    RehabBudgetItem,
    RentRollUnit,
    UnitType,
)

logger = logging.getLogger(__name__)

# Child record kinds that can be appended through the repository
CHILD_MODELS = {
    "unit_types": UnitType,
    "units": RentRollUnit,
    "other_income": OtherIncomeItem,
    "expenses": ExpenseItem,
    "rehab_items": RehabBudgetItem,
    "closing_costs": ClosingCostItem,
    "holding_costs": HoldingCostItem,
    "loans": Loan,
}

HISTORY_MONEY_FIELDS = (
    "gross_rental_income",
    "effective_gross_income",
    "total_operating_expenses",
    "net_operating_income",
    "annual_debt_service",
    "cash_flow",
    "arv",
    "total_invested_capital",
)
HISTORY_RATIO_FIELDS = (
    "cap_rate",
    "cash_on_cash_return",
    "dscr",
    "loan_to_value",
    "debt_yield",
    "break_even_occupancy",
    "equity_multiple",
)


def default_assumption_values(settings: Settings) -> Dict:
    """Column values for a freshly created assumptions row."""
    return {
        "vacancy_rate": settings.default_vacancy_rate,
        "management_fee_rate": settings.default_management_fee_rate,
        "market_cap_rate": settings.default_market_cap_rate,
        "loan_to_cost": settings.default_loan_to_cost,
        "hold_period_years": settings.default_hold_period_years,
        "rehab_financed": settings.default_rehab_financed,
        "dscr_threshold": settings.default_dscr_threshold,
    }


def assumptions_to_view(row: PropertyAssumptions) -> Assumptions:
    return Assumptions(
        vacancy_rate=to_decimal(row.vacancy_rate),
        management_fee_rate=to_decimal(row.management_fee_rate),
        market_cap_rate=to_decimal(row.market_cap_rate),
        loan_to_cost=to_decimal(row.loan_to_cost),
        hold_period_years=row.hold_period_years,
        rehab_financed=bool(row.rehab_financed),
        dscr_threshold=to_decimal(row.dscr_threshold),
    )


def expense_to_view(row: ExpenseItem):
    """Resolve the is_percentage flag into a tagged expense variant."""
    if row.is_percentage:
        if row.percentage is None:
            raise InvalidInputError(
                f"expenses[{row.name}].percentage", None, "required for a percentage expense"
            )
        return PercentageExpense(
            name=row.name, percentage_of_egi=to_decimal(row.percentage), category=row.category
        )
    return FixedExpense(
        name=row.name, annual_amount=to_decimal(row.annual_amount), category=row.category
    )


def property_to_view(prop: Property) -> PropertyRecord:
    return PropertyRecord(
        id=prop.id,
        name=prop.name,
        status=prop.status,
        acquisition_date=prop.acquisition_date,
        purchase_price=to_decimal(prop.purchase_price),
        rehab_cost=to_decimal(prop.rehab_cost),
        sale_price=to_decimal(prop.sale_price) if prop.sale_price is not None else None,
        total_profit=to_decimal(prop.total_profit) if prop.total_profit is not None else None,
        years_held=to_decimal(prop.years_held) if prop.years_held is not None else None,
        initial_capital_required=(
            to_decimal(prop.initial_capital_required)
            if prop.initial_capital_required is not None
            else None
        ),
    )


def build_snapshot(prop: Property, assumptions: PropertyAssumptions) -> PropertySnapshot:
    """Convert a loaded property and its children into an engine snapshot."""
    return PropertySnapshot(
        property=property_to_view(prop),
        assumptions=assumptions_to_view(assumptions),
        unit_types=tuple(
            UnitTypeView(
                id=row.id,
                name=row.name,
                bedrooms=row.bedrooms or 0,
                bathrooms=to_decimal(row.bathrooms),
                market_rent=to_decimal(row.market_rent),
                unit_count=row.unit_count or 0,
            )
            for row in prop.unit_types
        ),
        rent_roll=tuple(
            RentRollView(
                unit=row.unit,
                is_occupied=bool(row.is_occupied),
                current_rent=to_decimal(row.current_rent),
                pro_forma_rent=to_decimal(row.pro_forma_rent),
                unit_type_id=row.unit_type_id,
                tenant_name=row.tenant_name,
            )
            for row in prop.rent_roll
        ),
        other_income=tuple(
            OtherIncomeView(name=row.name, annual_amount=to_decimal(row.annual_amount))
            for row in prop.other_income
        ),
        expenses=tuple(expense_to_view(row) for row in prop.expenses),
        rehab_items=tuple(
            CostItem(name=row.name, amount=to_decimal(row.amount)) for row in prop.rehab_items
        ),
        closing_costs=tuple(
            CostItem(name=row.name, amount=to_decimal(row.amount)) for row in prop.closing_costs
        ),
        holding_costs=tuple(
            CostItem(name=row.name, amount=to_decimal(row.amount)) for row in prop.holding_costs
        ),
        loans=tuple(
            LoanTerms(
                id=row.id,
                name=row.name or "",
                principal=to_decimal(row.principal),
                annual_rate=to_decimal(row.annual_rate),
                term_years=row.term_years,
                payment_type=row.payment_type,
                is_active=bool(row.is_active),
                current_balance=(
                    to_decimal(row.current_balance) if row.current_balance is not None else None
                ),
            )
            for row in prop.loans
        ),
        version=prop.snapshot_version or 0,
    )


class PropertyRepository:
    """Storage access for properties, their child records and metrics history."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    # --- Properties ---

    def get_property(self, property_id: str) -> Optional[Property]:
        return (
            self.db.query(Property)
            .filter(Property.id == property_id, Property.is_deleted == False)
            .first()
        )

    def list_properties(self, skip: int = 0, limit: int = 100, status=None):
        """Return (properties, total) for non-deleted properties."""
        query = self.db.query(Property).filter(Property.is_deleted == False)
        if status is not None:
            query = query.filter(Property.status == status)
        total = query.count()
        return query.order_by(Property.created_at).offset(skip).limit(limit).all(), total

    def list_property_ids(self) -> List[str]:
        rows = (
            self.db.query(Property.id)
            .filter(Property.is_deleted == False)
            .order_by(Property.created_at)
            .all()
        )
        return [row[0] for row in rows]

    def create_property(self, **fields) -> Property:
        prop = Property(**fields)
        self.db.add(prop)
        self.db.commit()
        self.db.refresh(prop)
        logger.info(f"Created property {prop.id} ({prop.name})")
        return prop

    def update_property(self, prop: Property, fields: Dict) -> Property:
        for name, value in fields.items():
            setattr(prop, name, value)
        self._bump_version(prop)
        self.db.commit()
        self.db.refresh(prop)
        return prop

    def soft_delete(self, prop: Property) -> None:
        prop.is_deleted = True
        self._bump_version(prop)
        self.db.commit()

    # --- Assumptions ---

    def get_or_create_assumptions(self, property_id: str) -> PropertyAssumptions:
        """Fetch a property's assumptions, creating them with defaults on first access."""
        row = (
            self.db.query(PropertyAssumptions)
            .filter(PropertyAssumptions.property_id == property_id)
            .first()
        )
        if row is None:
            row = PropertyAssumptions(
                property_id=property_id, **default_assumption_values(self.settings)
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Created default assumptions for property {property_id}")
        return row

    def update_assumptions(self, prop: Property, fields: Dict) -> PropertyAssumptions:
        row = self.get_or_create_assumptions(prop.id)
        for name, value in fields.items():
            setattr(row, name, value)
        self._bump_version(prop)
        self.db.commit()
        self.db.refresh(row)
        return row

    # --- Child records ---

    def add_child(self, prop: Property, kind: str, **fields):
        """Append a child record (loan, unit, expense, ...) to a property."""
        model = CHILD_MODELS[kind]
        if model is Loan:
            fields.setdefault("position", len(prop.loans))
        row = model(property_id=prop.id, **fields)
        self.db.add(row)
        self._bump_version(prop)
        self.db.commit()
        self.db.refresh(row)
        return row

    def _bump_version(self, prop: Property) -> None:
        prop.snapshot_version = (prop.snapshot_version or 0) + 1

    # --- Snapshot ---

    def get_property_with_children(self, property_id: str) -> PropertySnapshot:
        """
        Load a consistent snapshot of a property and all of its child records.

        A missing or deleted property yields a snapshot without a property
        record, which the engine reports as MissingPropertyError.
        """
        if self.get_property(property_id) is None:
            return PropertySnapshot(property=None)

        # May commit; the load below must happen after it
        assumptions = self.get_or_create_assumptions(property_id)

        prop = (
            self.db.query(Property)
            .populate_existing()
            .options(
                selectinload(Property.unit_types),
                selectinload(Property.rent_roll),
                selectinload(Property.other_income),
                selectinload(Property.expenses),
                selectinload(Property.rehab_items),
                selectinload(Property.closing_costs),
                selectinload(Property.holding_costs),
                selectinload(Property.loans),
            )
            .filter(Property.id == property_id, Property.is_deleted == False)
            .first()
        )
        if prop is None:
            return PropertySnapshot(property=None)
        return build_snapshot(prop, assumptions)

    # --- Metrics history ---

    def record_metrics(self, result: MetricsResult) -> MetricsHistory:
        """Append a metrics row. Ratios are clamped to the column width."""
        ratios, clamped = result.clamped_ratios(self.settings.ratio_storage_limit)
        row = MetricsHistory(
            property_id=result.property_id,
            computed_at=result.computed_at,
            snapshot_version=result.snapshot_version,
            clamped_fields=clamped,
            **{name: getattr(result, name) for name in HISTORY_MONEY_FIELDS},
            **{name: ratios[name] for name in HISTORY_RATIO_FIELDS},
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info(f"Recorded metrics for property {result.property_id} v{result.snapshot_version}")
        return row

    def list_metrics_history(self, property_id: str, limit: int = 100) -> List[MetricsHistory]:
        return (
            self.db.query(MetricsHistory)
            .filter(MetricsHistory.property_id == property_id)
            .order_by(MetricsHistory.computed_at.desc(), MetricsHistory.snapshot_version.desc())
            .limit(limit)
            .all()
        )
