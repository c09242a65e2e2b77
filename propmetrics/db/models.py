"""
SQLAlchemy ORM models for property financial records.
"""

from datetime import datetime
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import declarative_base, relationship

from propmetrics.calculations.types import PaymentType, PropertyStatus

Base = declarative_base()

# Column types
Money = Numeric(15, 2)
Rate = Numeric(7, 4)
StoredRatio = Numeric(8, 4)


def generate_uuid():
    return str(uuid.uuid4())


class AuditMixin:
    """Mixin for audit fields on all models."""

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
    is_deleted = Column(Boolean, default=False, nullable=False)


class Property(AuditMixin, Base):
    """Property model representing a real estate asset."""

    __tablename__ = "properties"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)

    # Address
    address_street = Column(String(255))
    address_city = Column(String(100))
    address_state = Column(String(50))
    address_zip = Column(String(20))

    status = Column(SQLEnum(PropertyStatus), default=PropertyStatus.active, nullable=False)
    acquisition_date = Column(Date)

    # Acquisition
    purchase_price = Column(Money, default=0)
    rehab_cost = Column(Money, default=0)
    initial_capital_required = Column(Money)

    # Disposition (sold properties)
    sale_price = Column(Money)
    sale_date = Column(Date)
    total_profit = Column(Money)
    years_held = Column(Numeric(5, 2))

    # Bumped on every write to the property or its children
    snapshot_version = Column(Integer, default=0, nullable=False)

    # Relationships
    assumptions = relationship(
        "PropertyAssumptions",
        back_populates="property",
        uselist=False,
        cascade="all, delete-orphan",
    )
    unit_types = relationship(
        "UnitType", back_populates="property", cascade="all, delete-orphan"
    )
    rent_roll = relationship(
        "RentRollUnit", back_populates="property", cascade="all, delete-orphan"
    )
    other_income = relationship(
        "OtherIncomeItem", back_populates="property", cascade="all, delete-orphan"
    )
    expenses = relationship(
        "ExpenseItem", back_populates="property", cascade="all, delete-orphan"
    )
    rehab_items = relationship(
        "RehabBudgetItem", back_populates="property", cascade="all, delete-orphan"
    )
    closing_costs = relationship(
        "ClosingCostItem", back_populates="property", cascade="all, delete-orphan"
    )
    holding_costs = relationship(
        "HoldingCostItem", back_populates="property", cascade="all, delete-orphan"
    )
    loans = relationship(
        "Loan",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="Loan.position",
    )
    metrics_history = relationship(
        "MetricsHistory",
        back_populates="property",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )


class PropertyAssumptions(AuditMixin, Base):
    """Per-property underwriting assumptions, created lazily with defaults."""

    __tablename__ = "property_assumptions"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, unique=True)

    vacancy_rate = Column(Rate, nullable=False)
    management_fee_rate = Column(Rate, nullable=False)
    market_cap_rate = Column(Rate, nullable=False)
    loan_to_cost = Column(Rate, nullable=False)
    hold_period_years = Column(Integer, nullable=False)
    rehab_financed = Column(Boolean, default=True, nullable=False)
    dscr_threshold = Column(Rate, nullable=False)

    property = relationship("Property", back_populates="assumptions")


class UnitType(AuditMixin, Base):
    """Unit template (bed/bath mix) with a market rent."""

    __tablename__ = "unit_types"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    bedrooms = Column(Integer, default=0)
    bathrooms = Column(Numeric(3, 1), default=0)
    market_rent = Column(Money, default=0)  # Monthly
    unit_count = Column(Integer, default=0)

    property = relationship("Property", back_populates="unit_types")


class RentRollUnit(AuditMixin, Base):
    """One physical unit on the rent roll."""

    __tablename__ = "rent_roll_units"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    unit_type_id = Column(String, ForeignKey("unit_types.id"), nullable=True)
    unit = Column(String(20), nullable=False)

    is_occupied = Column(Boolean, default=False, nullable=False)
    current_rent = Column(Money, default=0)  # Monthly
    pro_forma_rent = Column(Money, default=0)  # Monthly
    square_footage = Column(Integer)

    # Tenant / lease
    tenant_name = Column(String(255))
    lease_start = Column(Date)
    lease_end = Column(Date)

    property = relationship("Property", back_populates="rent_roll")


class OtherIncomeItem(AuditMixin, Base):
    """Recurring non-rent income."""

    __tablename__ = "other_income_items"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    annual_amount = Column(Money, default=0)

    property = relationship("Property", back_populates="other_income")


class ExpenseItem(AuditMixin, Base):
    """Operating expense row: fixed annual amount or a percentage of EGI."""

    __tablename__ = "expense_items"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(50))
    is_percentage = Column(Boolean, default=False, nullable=False)
    annual_amount = Column(Money)
    percentage = Column(Rate)  # Decimal fraction of EGI
    description = Column(Text)

    property = relationship("Property", back_populates="expenses")


class RehabBudgetItem(AuditMixin, Base):
    """Rehab budget line."""

    __tablename__ = "rehab_budget_items"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(100))
    amount = Column(Money, default=0)
    completed = Column(Boolean, default=False)

    property = relationship("Property", back_populates="rehab_items")


class ClosingCostItem(AuditMixin, Base):
    """Acquisition closing cost line."""

    __tablename__ = "closing_cost_items"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    amount = Column(Money, default=0)

    property = relationship("Property", back_populates="closing_costs")


class HoldingCostItem(AuditMixin, Base):
    """Holding cost line (carry during rehab/lease-up)."""

    __tablename__ = "holding_cost_items"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    amount = Column(Money, default=0)

    property = relationship("Property", back_populates="holding_costs")


class Loan(AuditMixin, Base):
    """Loan model for financing structures."""

    __tablename__ = "loans"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String(255))
    loan_type = Column(String(50), default="acquisition")

    principal = Column(Money, nullable=False)
    annual_rate = Column(Rate, nullable=False)
    term_years = Column(Integer, default=30, nullable=False)
    payment_type = Column(SQLEnum(PaymentType), default=PaymentType.amortizing, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    current_balance = Column(Money)

    # Insertion order; "first loan" fallback depends on it
    position = Column(Integer, default=0, nullable=False)

    property = relationship("Property", back_populates="loans")


class MetricsHistory(AuditMixin, Base):
    """Append-only record of computed metrics for trend charts."""

    __tablename__ = "metrics_history"

    id = Column(String, primary_key=True, default=generate_uuid)
    property_id = Column(String, ForeignKey("properties.id"), nullable=False, index=True)
    computed_at = Column(DateTime, nullable=False, index=True)
    snapshot_version = Column(Integer, nullable=False)

    gross_rental_income = Column(Money)
    effective_gross_income = Column(Money)
    total_operating_expenses = Column(Money)
    net_operating_income = Column(Money)
    annual_debt_service = Column(Money)
    cash_flow = Column(Money)
    arv = Column(Money)
    total_invested_capital = Column(Money)

    cap_rate = Column(StoredRatio)
    cash_on_cash_return = Column(StoredRatio)
    dscr = Column(StoredRatio)
    loan_to_value = Column(StoredRatio)
    debt_yield = Column(StoredRatio)
    break_even_occupancy = Column(StoredRatio)
    equity_multiple = Column(StoredRatio)

    # Ratio names whose stored value was clamped to the column width
    clamped_fields = Column(JSON, default=list)

    property = relationship("Property", back_populates="metrics_history")
