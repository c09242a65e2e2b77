"""
Application services module.
"""

from propmetrics.services.metrics import MetricsService

__all__ = ["MetricsService"]
