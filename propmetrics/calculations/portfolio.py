"""
Portfolio Rollup

Evaluates many property snapshots independently and totals the results.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from propmetrics.calculations.errors import AmbiguousLoanSelectionWarning, CalculationError
from propmetrics.calculations.metrics import (
    DEFAULT_OCCUPANCY_RISK_THRESHOLD,
    MetricsResult,
    calculate_metrics,
    collect_warnings,
    safe_divide,
)
from propmetrics.calculations.types import ZERO, PropertySnapshot

logger = logging.getLogger(__name__)


@dataclass
class PortfolioSummary:
    """Totals across every property that evaluated successfully."""

    property_count: int = 0
    unit_count: int = 0
    total_arv: Decimal = ZERO
    total_cash_flow: Decimal = ZERO
    total_equity: Decimal = ZERO
    weighted_cap_rate: Optional[Decimal] = None
    results: Dict[str, MetricsResult] = field(default_factory=dict)
    errors: Dict[str, CalculationError] = field(default_factory=dict)
    warnings: List[AmbiguousLoanSelectionWarning] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def snapshot_unit_count(snapshot: PropertySnapshot) -> int:
    """Units on the rent roll, or the unit-type counts when there is none."""
    if snapshot.rent_roll:
        return len(snapshot.rent_roll)
    return sum(unit_type.unit_count for unit_type in snapshot.unit_types)


def summarize_portfolio(
    snapshots: Sequence[PropertySnapshot],
    computed_at: Optional[datetime] = None,
    occupancy_risk_threshold: Decimal = DEFAULT_OCCUPANCY_RISK_THRESHOLD,
) -> PortfolioSummary:
    """
    Evaluate each snapshot and aggregate portfolio totals.

    Properties that fail validation are reported in `errors` and excluded from
    the totals. Cap rate is weighted by ARV.
    """
    if computed_at is None:
        computed_at = datetime.utcnow()

    summary = PortfolioSummary()
    weighted_cap = ZERO

    for index, snapshot in enumerate(snapshots):
        key = snapshot.property.id if snapshot.property else f"#{index}"
        outcome = calculate_metrics(snapshot, computed_at, occupancy_risk_threshold)

        if isinstance(outcome, CalculationError):
            summary.errors[key] = outcome
            continue

        summary.results[key] = outcome
        summary.property_count += 1
        summary.unit_count += snapshot_unit_count(snapshot)
        summary.total_arv += outcome.arv
        summary.total_cash_flow += outcome.cash_flow
        summary.total_equity += outcome.current_equity
        if outcome.cap_rate is not None:
            weighted_cap += outcome.cap_rate * outcome.arv

    summary.weighted_cap_rate = safe_divide(weighted_cap, summary.total_arv)
    summary.warnings = collect_warnings(list(summary.results.values()))

    logger.info(
        f"Portfolio evaluated: {summary.property_count} ok, {summary.error_count} failed"
    )
    return summary
