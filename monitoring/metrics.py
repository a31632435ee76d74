"""
Monitoring - Metrics.

============================================================
RESPONSIBILITY
============================================================
Collects query performance metrics of the candle path.

- Last query time (ledger read) and process time (aggregation)
- Cache hits and misses
- Snapshot for the status endpoint and the auditor

============================================================
DESIGN PRINCIPLES
============================================================
- Metrics are lightweight
- Thread-safe, updated from any request path
- Reset is explicit (scheduled job or operator call)

============================================================
"""

import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the performance counters."""

    query_time_ms: float = 0.0
    process_time_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    queries: int = 0
    last_reset_ms: Optional[int] = None

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        if lookups == 0:
            return 0.0
        return self.cache_hits / lookups * 100

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["cache_hit_rate"] = round(self.cache_hit_rate, 2)
        return data


class PerformanceMetrics:
    """Mutable performance counters shared by the candle service and auditor."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = MetricsSnapshot()

    def _update(self, **changes: Any) -> None:
        current = asdict(self._snapshot)
        current.update(changes)
        self._snapshot = MetricsSnapshot(**current)

    def record_query(self, query_time_ms: float, process_time_ms: float) -> None:
        with self._lock:
            self._update(
                query_time_ms=query_time_ms,
                process_time_ms=process_time_ms,
                queries=self._snapshot.queries + 1,
            )

    def record_cache_hit(self) -> None:
        with self._lock:
            self._update(cache_hits=self._snapshot.cache_hits + 1)

    def record_cache_miss(self) -> None:
        with self._lock:
            self._update(cache_misses=self._snapshot.cache_misses + 1)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return self._snapshot

    def reset(self, now_ms: Optional[int] = None) -> None:
        with self._lock:
            self._snapshot = MetricsSnapshot(last_reset_ms=now_ms)
