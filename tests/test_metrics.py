"""
Tests for the metrics aggregator and portfolio rollup.
"""

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from propmetrics.calculations.errors import InvalidInputError, MissingPropertyError
from propmetrics.calculations.metrics import (
    MetricsResult,
    calculate_metrics,
    clamp_ratio,
    evaluate,
    safe_divide,
    years_since,
)
from propmetrics.calculations.portfolio import summarize_portfolio
from propmetrics.calculations.types import (
    Assumptions,
    CostItem,
    LoanTerms,
    PercentageExpense,
    PropertyRecord,
    PropertySnapshot,
    PropertyStatus,
)


FIXED_TIME = datetime(2025, 6, 1, 12, 0, 0)


def close(actual, expected, tolerance="0.01"):
    return abs(Decimal(actual) - Decimal(expected)) <= Decimal(tolerance)


class TestConcreteScenario:
    """The four-unit reference property."""

    def test_income_and_expenses(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert isinstance(result, MetricsResult)
        assert result.gross_rental_income == Decimal("48000")
        assert result.effective_gross_income == Decimal("45600")
        assert close(result.management_fee, "3648")
        assert close(result.total_operating_expenses, "15648")
        assert close(result.net_operating_income, "29952")

    def test_debt_and_cash_flow(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert close(result.monthly_debt_service, "1798.65")
        assert close(result.annual_debt_service, "21583.8", "0.1")
        assert close(result.cash_flow, "8368.2", "0.1")
        assert result.active_loan_id == "loan-1"

    def test_valuation_and_returns(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert close(result.arv, "544581.82")
        assert result.arv_basis == "income"
        assert result.total_invested_capital == Decimal("100000")
        assert close(result.cash_on_cash_return, "0.0837", "0.0001")
        assert close(result.cap_rate, "0.055", "0.000001")
        assert close(result.dscr, "1.3877", "0.0001")
        assert close(result.loan_to_value, "0.5509", "0.0001")
        assert result.loan_to_cost == Decimal("0.75")
        assert close(result.debt_yield, "0.09984", "0.00001")
        assert close(result.break_even_occupancy, "0.7757", "0.0001")
        assert close(result.cap_rate_on_purchase, "0.07488", "0.00001")
        assert close(result.operating_expense_ratio, "0.3432", "0.0001")

    def test_equity_multiples(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        # Unsold with no years held: equity at ARV over invested capital
        assert close(result.equity_multiple, "2.4458", "0.0001")
        assert close(result.projected_equity_multiple, "2.8642", "0.0001")
        assert result.annualized_return is None

    def test_flags(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert result.dscr_warning is False
        assert result.occupancy_risk is False
        assert result.warnings == ()

    def test_monthly_figures(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert result.monthly_gross_rent == Decimal("4000")
        assert close(result.monthly_noi, "2496")
        assert close(result.monthly_cash_flow, "697.35")

    def test_result_is_deterministic(self, fourplex):
        first = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        second = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert first == second


class TestUndefinedRatios:
    """Zero denominators produce None, never zero or infinity."""

    def test_safe_divide(self):
        assert safe_divide(Decimal("5"), Decimal("0")) is None
        assert safe_divide(Decimal("5"), Decimal("2")) == Decimal("2.5")

    def test_all_cash_property(self, fourplex):
        result = calculate_metrics(replace(fourplex, loans=()), computed_at=FIXED_TIME)
        assert result.annual_debt_service == Decimal("0")
        assert result.dscr is None
        assert result.debt_yield is None
        assert result.loan_to_value == Decimal("0")
        assert result.dscr_warning is False
        assert result.cash_flow == result.net_operating_income

    def test_empty_property(self):
        snapshot = PropertySnapshot(property=PropertyRecord(id="empty"))
        result = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        assert result.gross_rental_income == Decimal("0")
        assert result.arv == Decimal("0")
        assert result.cap_rate is None
        assert result.cash_on_cash_return is None
        assert result.break_even_occupancy is None
        assert result.operating_expense_ratio is None
        assert result.equity_multiple is None

    def test_fully_financed_has_no_cash_on_cash(self, fourplex):
        snapshot = replace(fourplex, assumptions=replace(fourplex.assumptions, loan_to_cost=Decimal("1")))
        result = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        assert result.total_invested_capital == Decimal("0")
        assert result.cash_on_cash_return is None


class TestErrorsAsValues:
    """Invalid input is returned, not raised."""

    def test_missing_property(self):
        outcome = calculate_metrics(PropertySnapshot(property=None))
        assert isinstance(outcome, MissingPropertyError)

    def test_evaluate_raises(self):
        with pytest.raises(MissingPropertyError):
            evaluate(PropertySnapshot(property=None))

    def test_rate_entered_as_percent(self, fourplex):
        snapshot = replace(fourplex, expenses=(PercentageExpense("Mgmt", Decimal("8")),))
        outcome = calculate_metrics(snapshot)
        assert isinstance(outcome, InvalidInputError)
        assert outcome.field == "expenses[Mgmt].percentage_of_egi"

    def test_negative_closing_cost(self, fourplex):
        snapshot = replace(fourplex, closing_costs=(CostItem("Credit", Decimal("-1")),))
        outcome = calculate_metrics(snapshot)
        assert isinstance(outcome, InvalidInputError)

    def test_negative_capital_override(self, fourplex):
        prop = replace(fourplex.property, initial_capital_required=Decimal("-50000"))
        outcome = calculate_metrics(replace(fourplex, property=prop))
        assert isinstance(outcome, InvalidInputError)
        assert outcome.field == "property.initial_capital_required"

    def test_negative_years_held(self, fourplex):
        prop = replace(fourplex.property, years_held=Decimal("-2"))
        outcome = calculate_metrics(replace(fourplex, property=prop))
        assert isinstance(outcome, InvalidInputError)
        assert outcome.field == "property.years_held"


class TestTimeHeld:
    """Cash flow to date for properties still held."""

    def held_since(self, fourplex, acquired, **fields):
        prop = replace(fourplex.property, acquisition_date=acquired, **fields)
        return replace(fourplex, property=prop)

    def test_years_since(self):
        assert years_since(date(2024, 6, 1), None) == Decimal("0")
        assert years_since(None, FIXED_TIME) == Decimal("0")
        assert years_since(date(2026, 1, 1), FIXED_TIME) == Decimal("0")
        assert years_since(date(2024, 6, 1), FIXED_TIME) == Decimal("365") / Decimal("365.25")

    def test_equity_multiple_counts_cash_flow_since_acquisition(self, fourplex):
        result = calculate_metrics(self.held_since(fourplex, date(2023, 6, 1)), computed_at=FIXED_TIME)
        # 731 days held, about two years of cash flow on top of equity at ARV
        assert close(result.equity_multiple, "2.6133", "0.0005")

    def test_recorded_years_held_wins(self, fourplex):
        snapshot = self.held_since(fourplex, date(2015, 1, 1), years_held=Decimal("1"))
        result = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        expected = (result.current_equity + result.cash_flow) / result.total_invested_capital
        assert result.equity_multiple == expected

    def test_projected_multiple_ignores_time_held(self, fourplex):
        held = calculate_metrics(self.held_since(fourplex, date(2023, 6, 1)), computed_at=FIXED_TIME)
        fresh = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert held.projected_equity_multiple == fresh.projected_equity_multiple


class TestSoldProperty:
    """Sold properties are valued at the sale price."""

    def sold(self, fourplex, **fields):
        prop = replace(
            fourplex.property,
            status=PropertyStatus.sold,
            sale_price=Decimal("600000"),
            **fields,
        )
        return replace(fourplex, property=prop)

    def test_arv_is_sale_price(self, fourplex):
        result = calculate_metrics(self.sold(fourplex), computed_at=FIXED_TIME)
        assert result.arv == Decimal("600000")
        assert result.arv_basis == "sale_price"

    def test_arv_ignores_market_cap_rate(self, fourplex):
        first = calculate_metrics(self.sold(fourplex), computed_at=FIXED_TIME)
        snapshot = self.sold(fourplex)
        snapshot = replace(snapshot, assumptions=replace(snapshot.assumptions, market_cap_rate=Decimal("0.09")))
        second = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        assert first.arv == second.arv

    def test_realized_equity_multiple(self, fourplex):
        snapshot = self.sold(
            fourplex,
            total_profit=Decimal("150000"),
            initial_capital_required=Decimal("120000"),
            years_held=Decimal("5"),
        )
        result = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        assert result.equity_multiple == Decimal("1.25")
        assert result.annualized_return == Decimal("0.25")
        assert result.projected_equity_multiple is None

    def test_missing_sale_price(self, fourplex):
        prop = replace(fourplex.property, status=PropertyStatus.sold)
        outcome = calculate_metrics(replace(fourplex, property=prop))
        assert isinstance(outcome, InvalidInputError)
        assert outcome.field == "property.sale_price"


class TestMonotonicity:
    """Directional properties of the model."""

    @pytest.mark.parametrize("low,high", [("0.00", "0.05"), ("0.05", "0.20"), ("0.20", "0.50")])
    def test_more_vacancy_never_raises_noi(self, fourplex, low, high):
        def noi(rate):
            snapshot = replace(fourplex, assumptions=replace(fourplex.assumptions, vacancy_rate=Decimal(rate)))
            return calculate_metrics(snapshot, computed_at=FIXED_TIME).net_operating_income

        assert noi(high) <= noi(low)

    def test_arv_uses_one_cap_rate(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME)
        assert abs(result.net_operating_income / result.arv - fourplex.assumptions.market_cap_rate) < Decimal("1e-20")


class TestRiskFlagsAndWarnings:
    """DSCR and occupancy flags, ambiguous loan selection."""

    def test_dscr_warning_below_threshold(self, fourplex):
        snapshot = replace(fourplex, assumptions=replace(fourplex.assumptions, dscr_threshold=Decimal("1.5")))
        result = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        assert result.dscr_warning is True

    def test_occupancy_risk(self, fourplex):
        result = calculate_metrics(fourplex, computed_at=FIXED_TIME, occupancy_risk_threshold=Decimal("0.70"))
        assert result.occupancy_risk is True

    def test_ambiguous_loan_selection(self, fourplex):
        loans = (
            LoanTerms(id="first", principal=Decimal("300000"), annual_rate=Decimal("0.06")),
            LoanTerms(id="second", principal=Decimal("50000"), annual_rate=Decimal("0.09")),
        )
        result = calculate_metrics(replace(fourplex, loans=loans), computed_at=FIXED_TIME)
        assert result.active_loan_id == "first"
        assert len(result.warnings) == 1
        assert result.warnings[0].selected_loan_id == "first"
        assert "first" in result.to_dict()["warnings"][0]


class TestStorageClamp:
    """Ratios are bounded only for storage."""

    def test_clamp_ratio(self):
        assert clamp_ratio(Decimal("25")) == Decimal("9.9999")
        assert clamp_ratio(Decimal("-25")) == Decimal("-9.9999")
        assert clamp_ratio(None) is None

    def test_clamped_ratios_keep_raw_values(self, fourplex):
        # Tiny capital makes cash-on-cash explode
        snapshot = replace(
            fourplex,
            assumptions=replace(fourplex.assumptions, loan_to_cost=Decimal("0.9999")),
        )
        result = calculate_metrics(snapshot, computed_at=FIXED_TIME)
        clamped, names = result.clamped_ratios()
        assert result.cash_on_cash_return > Decimal("9.9999")
        assert clamped["cash_on_cash_return"] == Decimal("9.9999")
        assert "cash_on_cash_return" in names
        assert "cap_rate" not in names


class TestPortfolio:
    """Portfolio rollup."""

    def test_summary_totals(self, fourplex):
        other = replace(
            fourplex,
            property=PropertyRecord(id="second", purchase_price=Decimal("400000")),
            loans=(),
        )
        summary = summarize_portfolio([fourplex, other], computed_at=FIXED_TIME)
        assert summary.property_count == 2
        assert summary.unit_count == 8
        assert summary.error_count == 0
        assert summary.total_arv == summary.results["fourplex"].arv + summary.results["second"].arv
        assert close(summary.weighted_cap_rate, "0.055", "0.000001")

    def test_invalid_property_does_not_abort(self, fourplex):
        bad = PropertySnapshot(
            property=PropertyRecord(id="bad"),
            assumptions=Assumptions(vacancy_rate=Decimal("-0.1")),
        )
        summary = summarize_portfolio([fourplex, bad], computed_at=FIXED_TIME)
        assert summary.property_count == 1
        assert isinstance(summary.errors["bad"], InvalidInputError)
