"""
Metrics registry shared by the orchestrator, the schema prober and every
partition unit.

Counters are summed across units. Gauges are write-once values such as the
schema inference time, which must be recorded exactly once per export.
"""

import threading
from typing import Dict

SCHEMA_ELAPSED_MS = "schema_elapsed_ms"
PARTITION_COUNT = "partition_count"
RECORD_COUNT = "record_count"
EXECUTE_QUERY_ELAPSED_MS = "execute_query_elapsed_ms"
WRITE_ELAPSED_MS = "write_elapsed_ms"
BYTES_WRITTEN = "bytes_written"
SHARD_COUNT = "shard_count"


class MetricsRegistry:
    """Named integer counters and gauges, safe to update from concurrent units"""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._gauges: Dict[str, int] = {}

    def inc(self, name: str, value: int = 1) -> None:
        if value < 0:
            raise ValueError(f"Counter '{name}' cannot be decremented")
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + int(value)

    def set_gauge(self, name: str, value: int) -> None:
        """Record a value that must be set exactly once"""
        with self._lock:
            if name in self._gauges:
                raise ValueError(f"Gauge '{name}' already recorded")
            self._gauges[name] = int(value)

    def get(self, name: str, default: int = 0) -> int:
        with self._lock:
            if name in self._gauges:
                return self._gauges[name]
            return self._counters.get(name, default)

    def snapshot(self) -> Dict[str, int]:
        """Copy of every metric, keys sorted"""
        with self._lock:
            merged = {**self._counters, **self._gauges}
        return dict(sorted(merged.items()))

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._gauges or name in self._counters
