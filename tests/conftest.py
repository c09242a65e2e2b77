"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os
from decimal import Decimal

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from propmetrics.main import app
from propmetrics.calculations.types import (
    Assumptions,
    FixedExpense,
    LoanTerms,
    PropertyRecord,
    PropertySnapshot,
    RentRollUnit,
)
from propmetrics.db.database import get_db
# Import all models to ensure all tables are created
from propmetrics.db.models import (
    Base, Property, PropertyAssumptions, UnitType, RentRollUnit as RentRollRow,
    OtherIncomeItem, ExpenseItem, RehabBudgetItem, ClosingCostItem,
    HoldingCostItem, Loan, MetricsHistory
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "integration: marks integration tests")


# Create a shared test database engine
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency globally for all tests
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and drop after."""
    Base.metadata.create_all(bind=test_engine)
    app.state.metrics_cache.clear()
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Create database session for test setup."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def fourplex_snapshot(**overrides) -> PropertySnapshot:
    """
    Four occupied units at $1,000/month, one $12,000 fixed expense and a
    $300,000 30-year loan at 6% on a $400,000 purchase.
    """
    values = dict(
        property=PropertyRecord(id="fourplex", purchase_price=Decimal("400000")),
        assumptions=Assumptions(
            vacancy_rate=Decimal("0.05"),
            management_fee_rate=Decimal("0.08"),
            market_cap_rate=Decimal("0.055"),
            loan_to_cost=Decimal("0.75"),
            rehab_financed=True,
        ),
        rent_roll=tuple(
            RentRollUnit(unit=f"{n}", is_occupied=True, current_rent=Decimal("1000"))
            for n in range(1, 5)
        ),
        expenses=(FixedExpense("Property Taxes", Decimal("12000")),),
        loans=(
            LoanTerms(
                id="loan-1",
                principal=Decimal("300000"),
                annual_rate=Decimal("0.06"),
                term_years=30,
                is_active=True,
            ),
        ),
    )
    values.update(overrides)
    return PropertySnapshot(**values)


@pytest.fixture
def fourplex():
    """Concrete 4-unit snapshot used across calculation tests."""
    return fourplex_snapshot()
