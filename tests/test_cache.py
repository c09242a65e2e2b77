"""
Tests for the versioned metrics cache.
"""

from dataclasses import replace
from datetime import datetime

import pytest

from propmetrics.calculations.cache import MetricsCache
from propmetrics.calculations.metrics import calculate_metrics


@pytest.fixture
def result(fourplex):
    return calculate_metrics(fourplex, computed_at=datetime(2025, 6, 1))


class TestMetricsCache:
    """Cache keyed by (property_id, snapshot_version)."""

    def test_hit_on_same_version(self, result):
        cache = MetricsCache()
        cache.put(result)
        assert cache.get("fourplex", 0) is result

    def test_miss_on_newer_version(self, result):
        cache = MetricsCache()
        cache.put(result)
        assert cache.get("fourplex", 1) is None

    def test_invalidate_drops_every_version(self, result):
        cache = MetricsCache()
        cache.put(result)
        cache.put(replace(result, snapshot_version=1))
        cache.put(replace(result, property_id="other"))
        assert cache.invalidate("fourplex") == 2
        assert len(cache) == 1
        assert cache.get("other", 0) is not None

    def test_least_recently_used_evicted(self, result):
        cache = MetricsCache(max_entries=2)
        cache.put(replace(result, property_id="a"))
        cache.put(replace(result, property_id="b"))
        cache.get("a", 0)
        cache.put(replace(result, property_id="c"))
        assert cache.get("b", 0) is None
        assert cache.get("a", 0) is not None
        assert cache.get("c", 0) is not None

    def test_clear(self, result):
        cache = MetricsCache()
        cache.put(result)
        cache.clear()
        assert len(cache) == 0

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            MetricsCache(max_entries=0)
