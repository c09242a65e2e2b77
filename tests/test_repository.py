"""
Tests for the property repository and metrics service.
"""

from datetime import date
from decimal import Decimal

import pytest

from propmetrics.calculations.cache import MetricsCache
from propmetrics.calculations.errors import InvalidInputError, MissingPropertyError
from propmetrics.calculations.metrics import MetricsResult
from propmetrics.calculations.types import FixedExpense, PaymentType, PercentageExpense
from propmetrics.db.models import PropertyAssumptions
from propmetrics.db.repository import PropertyRepository
from propmetrics.services.metrics import MetricsService


@pytest.fixture
def repository(db_session):
    return PropertyRepository(db_session)


@pytest.fixture
def fourplex_property(repository):
    """Stored version of the four-unit reference property."""
    prop = repository.create_property(name="Fourplex", purchase_price=Decimal("400000"))
    for number in range(1, 5):
        repository.add_child(
            prop, "units", unit=str(number), is_occupied=True, current_rent=Decimal("1000")
        )
    repository.add_child(prop, "expenses", name="Property Taxes", annual_amount=Decimal("12000"))
    repository.add_child(
        prop,
        "loans",
        name="Senior",
        principal=Decimal("300000"),
        annual_rate=Decimal("0.06"),
        term_years=30,
        payment_type=PaymentType.amortizing,
        is_active=True,
    )
    return prop


class TestAssumptions:
    """Assumptions are created lazily with configured defaults."""

    def test_created_on_first_access(self, repository, db_session):
        prop = repository.create_property(name="Duplex")
        assert db_session.query(PropertyAssumptions).count() == 0

        row = repository.get_or_create_assumptions(prop.id)
        assert Decimal(row.vacancy_rate) == Decimal("0.05")
        assert Decimal(row.management_fee_rate) == Decimal("0.08")
        assert row.hold_period_years == 5

        again = repository.get_or_create_assumptions(prop.id)
        assert again.id == row.id
        assert db_session.query(PropertyAssumptions).count() == 1

    def test_update_bumps_version(self, repository):
        prop = repository.create_property(name="Duplex")
        repository.update_assumptions(prop, {"vacancy_rate": Decimal("0.10")})
        assert prop.snapshot_version == 1
        assert Decimal(repository.get_or_create_assumptions(prop.id).vacancy_rate) == Decimal("0.10")


class TestSnapshot:
    """Loading a property and its children."""

    def test_every_write_bumps_version(self, repository, fourplex_property):
        # Four units, one expense, one loan
        assert fourplex_property.snapshot_version == 6
        repository.update_property(fourplex_property, {"name": "Renamed"})
        assert fourplex_property.snapshot_version == 7

    def test_snapshot_contents(self, repository, fourplex_property):
        snapshot = repository.get_property_with_children(fourplex_property.id)
        assert snapshot.property.id == fourplex_property.id
        assert snapshot.property.purchase_price == Decimal("400000")
        assert len(snapshot.rent_roll) == 4
        assert snapshot.expenses == (FixedExpense("Property Taxes", Decimal("12000")),)
        assert snapshot.loans[0].is_active is True
        assert snapshot.loans[0].payment_type == PaymentType.amortizing
        assert snapshot.version == fourplex_property.snapshot_version

    def test_acquisition_date_in_view(self, repository):
        prop = repository.create_property(name="Duplex", acquisition_date=date(2022, 3, 15))
        snapshot = repository.get_property_with_children(prop.id)
        assert snapshot.property.acquisition_date == date(2022, 3, 15)

    def test_missing_property(self, repository):
        snapshot = repository.get_property_with_children("does-not-exist")
        assert snapshot.property is None

    def test_deleted_property_is_missing(self, repository, fourplex_property):
        repository.soft_delete(fourplex_property)
        assert repository.get_property_with_children(fourplex_property.id).property is None

    def test_percentage_expense_view(self, repository):
        prop = repository.create_property(name="Duplex")
        repository.add_child(
            prop, "expenses", name="Reserves", is_percentage=True, percentage=Decimal("0.05")
        )
        snapshot = repository.get_property_with_children(prop.id)
        assert snapshot.expenses == (PercentageExpense("Reserves", Decimal("0.05")),)

    def test_percentage_expense_without_percentage(self, repository):
        prop = repository.create_property(name="Duplex")
        repository.add_child(prop, "expenses", name="Reserves", is_percentage=True)
        with pytest.raises(InvalidInputError):
            repository.get_property_with_children(prop.id)

    def test_loans_keep_insertion_order(self, repository):
        prop = repository.create_property(name="Duplex")
        for name in ("first", "second", "third"):
            repository.add_child(
                prop, "loans", name=name, principal=Decimal("1000"), annual_rate=Decimal("0.05")
            )
        snapshot = repository.get_property_with_children(prop.id)
        assert [loan.name for loan in snapshot.loans] == ["first", "second", "third"]


class TestMetricsService:
    """Computing, caching and recording metrics from storage."""

    def test_stored_property_matches_reference(self, repository, fourplex_property):
        result = MetricsService(repository).get_metrics(fourplex_property.id)
        assert isinstance(result, MetricsResult)
        assert abs(result.net_operating_income - Decimal("29952")) < Decimal("0.01")
        assert result.total_invested_capital == Decimal("100000")

    def test_missing_property_returns_error(self, repository):
        outcome = MetricsService(repository).get_metrics("nope")
        assert isinstance(outcome, MissingPropertyError)

    def test_cached_until_write(self, repository, fourplex_property):
        service = MetricsService(repository, cache=MetricsCache())
        first = service.get_metrics(fourplex_property.id)
        assert service.get_metrics(fourplex_property.id) is first

        repository.add_child(fourplex_property, "other_income", name="Laundry", annual_amount=Decimal("600"))
        service.invalidate(fourplex_property.id)
        second = service.get_metrics(fourplex_property.id)
        assert second is not first
        assert second.other_income_annual == Decimal("600")

    def test_record_and_list_history(self, repository, fourplex_property):
        service = MetricsService(repository)
        service.get_metrics(fourplex_property.id, record=True)
        repository.update_assumptions(fourplex_property, {"vacancy_rate": Decimal("0.10")})
        service.get_metrics(fourplex_property.id, record=True)

        history = repository.list_metrics_history(fourplex_property.id)
        assert len(history) == 2
        assert history[0].snapshot_version > history[1].snapshot_version
        assert history[0].clamped_fields == []

    def test_out_of_range_ratio_is_clamped_on_record(self, repository, fourplex_property):
        repository.update_assumptions(fourplex_property, {"loan_to_cost": Decimal("0.9999")})
        service = MetricsService(repository)
        result = service.get_metrics(fourplex_property.id, record=True)

        row = repository.list_metrics_history(fourplex_property.id)[0]
        assert result.cash_on_cash_return > Decimal("9.9999")
        assert Decimal(row.cash_on_cash_return) == Decimal("9.9999")
        assert "cash_on_cash_return" in row.clamped_fields

    def test_portfolio_summary_reports_bad_property(self, repository, fourplex_property):
        bad = repository.create_property(name="Bad")
        repository.add_child(bad, "expenses", name="Broken", is_percentage=True)

        summary = MetricsService(repository).portfolio_summary()
        assert summary.property_count == 1
        assert fourplex_property.id in summary.results
        assert bad.id in summary.errors
