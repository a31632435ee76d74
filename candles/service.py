"""
Candle Service.

============================================================
PURPOSE
============================================================
Builds candle sets from the ledger, checking the result cache
for the closed candles and always recomputing the current one.

============================================================
COUNT-BUCKET ALIGNMENT
============================================================
Count buckets are anchored on the ledger ordinal: with T stored
events and bucket size N, the last T % N events form the
current (partial) candle and everything before it splits into
complete buckets. Retention cleanup changes T and therefore
shifts bucket boundaries.

============================================================
"""

import logging
import time
from typing import Iterable, List, Optional, Sequence, Tuple

from candles import aggregator
from candles.cache import CandleCache
from candles.models import BucketKind, Candle, CandleQuery, CandleSet, PriceChangeStats
from core import constants
from core.clock import ClockProtocol, SystemClock, floor_to_period
from core.config import CandleConfig
from ledger.ledger import ScoreLedger
from ledger.models import ScoreEvent
from monitoring.metrics import PerformanceMetrics


logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class CandleService:
    """
    Candle queries over the score ledger.

    Read-only with respect to the ledger; safe to call from
    several request paths at once.
    """

    def __init__(
        self,
        ledger: ScoreLedger,
        cache: CandleCache,
        clock: Optional[ClockProtocol] = None,
        metrics: Optional[PerformanceMetrics] = None,
        config: Optional[CandleConfig] = None,
    ):
        self._ledger = ledger
        self._cache = cache
        self._clock = clock or SystemClock()
        self._metrics = metrics or PerformanceMetrics()
        self._config = config or CandleConfig()

    @property
    def cache(self) -> CandleCache:
        return self._cache

    @property
    def metrics(self) -> PerformanceMetrics:
        return self._metrics

    @property
    def config(self) -> CandleConfig:
        return self._config

    def default_query(self, limit: int, include_current: bool = True) -> CandleQuery:
        """Count-bucketed query with the configured bucket size."""
        return CandleQuery(BucketKind.COUNT, self._config.bucket_size, limit, include_current)

    # =========================================================
    # CANDLE QUERIES
    # =========================================================

    def get_candles(self, query: CandleQuery, use_cache: bool = True) -> CandleSet:
        """
        Closed candles plus (optionally) the current candle.

        With use_cache=False the cache is neither read nor written.

        Raises:
            StorageFailureError: the ledger store failed
        """
        closed: Optional[List[Candle]] = None
        if use_cache:
            cached = self._cache.get(query.cache_key)
            if cached is not None:
                self._metrics.record_cache_hit()
                closed = list(cached)
            else:
                self._metrics.record_cache_miss()

        cache_used = closed is not None
        if query.bucket_kind is BucketKind.COUNT:
            closed, current, total = self._count_candles(query, closed)
        else:
            closed, current, total = self._time_candles(query, closed)

        if use_cache and not cache_used:
            self._cache.set(query.cache_key, closed)

        return CandleSet(
            query=query,
            candles=closed,
            current=current,
            last_update_ms=self._clock.now_ms(),
            total_records=total,
            cache_used=cache_used,
        )

    def _count_candles(
        self,
        query: CandleQuery,
        closed: Optional[List[Candle]],
    ) -> Tuple[List[Candle], Optional[Candle], int]:
        size = query.bucket_size
        period_ms = self._config.bucket_period_ms

        started = time.perf_counter()
        total = self._ledger.count()
        partial_len = total % size
        if closed is not None:
            fetch = partial_len if query.include_current else 0
        else:
            fetch = query.limit * size + partial_len
        events = self._ledger.newest(fetch)
        query_ms = _elapsed_ms(started)

        started = time.perf_counter()
        split_at = max(len(events) - partial_len, 0)
        partial = events[split_at:]
        if closed is None:
            complete = events[:split_at]
            # Drop a misaligned head left by a concurrent append
            complete = complete[len(complete) % size:]
            closed = aggregator.aggregate_by_count(complete, size, period_ms)[-query.limit:]

        current = None
        if query.include_current:
            current = aggregator.current_count_candle(partial, period_ms)
        self._metrics.record_query(query_ms, _elapsed_ms(started))

        return closed, current, total

    def _time_candles(
        self,
        query: CandleQuery,
        closed: Optional[List[Candle]],
    ) -> Tuple[List[Candle], Optional[Candle], int]:
        period = query.bucket_size
        now = self._clock.now_ms()
        current_slot = floor_to_period(now, period)
        history_start = current_slot - query.limit * period
        max_scan = self._config.max_scan_events

        started = time.perf_counter()
        total = self._ledger.count()
        history: Sequence[ScoreEvent] = []
        if closed is None:
            history = self._ledger.events_between(history_start, current_slot, max_scan)
            if len(history) >= max_scan:
                logger.warning(
                    f"Time-bucketed scan hit the {max_scan} event cap; "
                    f"oldest slot may be incomplete"
                )
        recent: Sequence[ScoreEvent] = []
        if query.include_current:
            recent = self._ledger.events_between(current_slot, current_slot + period, max_scan)
        query_ms = _elapsed_ms(started)

        started = time.perf_counter()
        if closed is None:
            closed = aggregator.aggregate_by_time(history, period, history_start, current_slot)
        current = aggregator.current_time_candle(recent, period, now) if query.include_current else None
        self._metrics.record_query(query_ms, _elapsed_ms(started))

        return closed, current, total

    # =========================================================
    # DERIVED
    # =========================================================

    def price_change_stats(self, query: CandleQuery) -> PriceChangeStats:
        """Movement summary over the closed candles of a query."""
        candle_set = self.get_candles(query)
        return aggregator.price_change_stats(candle_set.candles)

    def warmup(self, limits: Optional[Iterable[int]] = None) -> int:
        """
        Pre-compute closed count-bucketed candles for common limits.

        Returns:
            Number of cache entries written
        """
        limits = tuple(limits) if limits is not None else self._config.warmup_limits
        warmed = 0
        for limit in limits:
            query = self.default_query(min(limit, constants.MAX_CANDLE_LIMIT), include_current=False)
            self._cache.set(query.cache_key, self.get_candles(query, use_cache=False).candles)
            warmed += 1
        logger.info(f"Candle cache warmed for limits {list(limits)}")
        return warmed

    def sweep_cache(self) -> int:
        return self._cache.cleanup()

    def reset_metrics(self) -> None:
        """Clear performance counters and the cache."""
        self._metrics.reset(self._clock.now_ms())
        self._cache.invalidate_all()
