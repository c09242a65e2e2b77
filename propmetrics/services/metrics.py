"""
Metrics service.

Glue between storage and the pure calculation engine: loads a consistent
snapshot, serves cached results for an unchanged snapshot version, and
optionally appends results to the history table.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from propmetrics.calculations.cache import MetricsCache
from propmetrics.calculations.errors import CalculationError, MissingPropertyError
from propmetrics.calculations.metrics import MetricsResult, calculate_metrics
from propmetrics.calculations.portfolio import PortfolioSummary, summarize_portfolio
from propmetrics.config import Settings, get_settings
from propmetrics.db.repository import PropertyRepository

logger = logging.getLogger(__name__)


class MetricsService:
    """Computes, caches and records property metrics."""

    def __init__(
        self,
        repository: PropertyRepository,
        cache: Optional[MetricsCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.settings = settings or get_settings()

    def get_metrics(
        self, property_id: str, record: bool = False
    ) -> Union[MetricsResult, CalculationError]:
        """
        Metrics for one property, or the error that prevented computing them.

        Args:
            property_id: Property to evaluate
            record: Append the result to metrics history

        Returns:
            MetricsResult or CalculationError
        """
        try:
            snapshot = self.repository.get_property_with_children(property_id)
        except CalculationError as e:
            return e

        if snapshot.property is None:
            return MissingPropertyError(property_id)

        result = None
        if self.cache is not None:
            result = self.cache.get(property_id, snapshot.version)
            if result is not None:
                logger.debug(f"Metrics cache hit for {property_id} v{snapshot.version}")

        if result is None:
            outcome = calculate_metrics(
                snapshot,
                occupancy_risk_threshold=self.settings.occupancy_risk_threshold,
            )
            if isinstance(outcome, CalculationError):
                return outcome
            result = outcome
            if self.cache is not None:
                self.cache.put(result)

        if record:
            self.repository.record_metrics(result)
        return result

    def invalidate(self, property_id: str) -> None:
        """Forget cached metrics after any write to the property's records."""
        if self.cache is not None:
            dropped = self.cache.invalidate(property_id)
            if dropped:
                logger.debug(f"Invalidated {dropped} cached metrics for {property_id}")

    def portfolio_summary(self) -> PortfolioSummary:
        """Evaluate every non-deleted property and roll the results up."""
        snapshots = []
        load_errors = {}
        for property_id in self.repository.list_property_ids():
            try:
                snapshots.append(self.repository.get_property_with_children(property_id))
            except CalculationError as e:
                load_errors[property_id] = e

        summary = summarize_portfolio(
            snapshots,
            computed_at=datetime.utcnow(),
            occupancy_risk_threshold=self.settings.occupancy_risk_threshold,
        )
        summary.errors.update(load_errors)
        return summary
