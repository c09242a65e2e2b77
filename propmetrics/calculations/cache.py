"""
Metrics cache owned by the caller.

Entries are keyed by (property_id, snapshot_version). A write to any of a
property's records bumps its version, so stale entries are never served; the
caller also calls invalidate() on write to free them. Nothing expires on a timer.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional, Tuple

from propmetrics.calculations.metrics import MetricsResult

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, int]


class MetricsCache:
    """Bounded LRU of MetricsResult values."""

    def __init__(self, max_entries: int = 512):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, MetricsResult]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, property_id: str, version: int) -> Optional[MetricsResult]:
        key = (property_id, version)
        with self._lock:
            result = self._entries.get(key)
            if result is not None:
                self._entries.move_to_end(key)
        return result

    def put(self, result: MetricsResult) -> None:
        key = (result.property_id, result.snapshot_version)
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached metrics for {evicted}")

    def invalidate(self, property_id: str) -> int:
        """Drop every cached version for a property. Returns how many were dropped."""
        with self._lock:
            stale = [key for key in self._entries if key[0] == property_id]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
