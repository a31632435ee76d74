"""
Score Query Service.

============================================================
PURPOSE
============================================================
The request/response surface consumed by the HTTP layer.

- get_points_in_window(window, limit)
- get_stats(window)
- get_candles(bucket_kind, bucket_size | period, limit, include_current)
- get_price_change_stats(bucket_kind, bucket_size | period, limit)
- get_trend(window)
- get_indicators(bucket_kind, bucket_size | period, limit)

Every call returns a QueryResult. Failures are structured:
success=False with an error dict, never a partial payload.
No call has side effects on the ledger.

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from candles.indicators import compute_indicators
from candles.models import BucketKind, CandlePeriod, CandleQuery
from candles.service import CandleService
from core import constants
from core.exceptions import InvalidQueryError, ScoreSystemError, StorageFailureError
from ledger.ledger import ScoreLedger
from ledger.models import WindowKind


logger = logging.getLogger(__name__)


_TREND_PERIODS = {
    WindowKind.ONE_DAY: (CandlePeriod.ONE_HOUR, 24),
    WindowKind.ONE_WEEK: (CandlePeriod.ONE_DAY, 7),
    WindowKind.ONE_MONTH: (CandlePeriod.ONE_DAY, 30),
}


@dataclass(frozen=True)
class QueryResult:
    """Structured query outcome."""

    success: bool
    data: Any = None
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: Any) -> "QueryResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: ScoreSystemError) -> "QueryResult":
        return cls(success=False, error=error.to_dict())

    @property
    def error_type(self) -> Optional[str]:
        return self.error.get("type") if self.error else None


def resolve_bucket(
    bucket_kind: Union[BucketKind, str],
    bucket_size: Union[int, str, None],
    default_size: int,
) -> CandleQuery:
    """
    Build the bucketing part of a query.

    TIME buckets accept a named period ("1h") or milliseconds;
    COUNT buckets accept an event count (default when None).
    The returned query has a placeholder limit.
    """
    kind = BucketKind.parse(bucket_kind)
    if kind is BucketKind.TIME:
        if bucket_size is None:
            size = CandlePeriod.ONE_MINUTE.period_ms
        elif isinstance(bucket_size, str) and not bucket_size.isdigit():
            size = CandlePeriod.parse(bucket_size).period_ms
        else:
            size = int(bucket_size)
    else:
        size = default_size if bucket_size is None else _as_int(bucket_size, "bucket_size")
    return CandleQuery(kind, size, 1)


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidQueryError(f"{name} must be an integer", name, value) from None


class ScoreQueryService:
    """Read-only queries over the ledger and candles."""

    def __init__(self, ledger: ScoreLedger, candle_service: CandleService):
        self._ledger = ledger
        self._candles = candle_service

    def _execute(self, operation: str, work: Callable[[], Any]) -> QueryResult:
        try:
            return QueryResult.ok(work())
        except InvalidQueryError as e:
            logger.info(f"Rejected {operation}: {e.message}")
            return QueryResult.failure(e)
        except StorageFailureError as e:
            logger.error(f"{operation} failed on storage: {e.message}")
            return QueryResult.failure(e)

    def _candle_query(self, bucket_kind, bucket_size, limit, include_current) -> CandleQuery:
        base = resolve_bucket(bucket_kind, bucket_size, self._candles.config.bucket_size)
        return CandleQuery(base.bucket_kind, base.bucket_size, _as_int(limit, "limit"), include_current)

    # =========================================================
    # LEDGER QUERIES
    # =========================================================

    def get_points_in_window(
        self,
        window: Union[WindowKind, str],
        limit: int = constants.DEFAULT_POINTS_LIMIT,
    ) -> QueryResult:
        def work() -> Dict[str, Any]:
            kind = WindowKind.parse(window)
            if not 0 < limit <= constants.MAX_POINTS_LIMIT:
                raise InvalidQueryError(
                    f"limit must be between 1 and {constants.MAX_POINTS_LIMIT}", "limit", limit
                )
            events = self._ledger.points_in_window(kind, limit)
            return {
                "window": kind.value,
                "count": len(events),
                "points": [e.to_dict() for e in events],
            }

        return self._execute("get_points_in_window", work)

    def get_stats(self, window: Union[WindowKind, str]) -> QueryResult:
        def work() -> Dict[str, Any]:
            kind = WindowKind.parse(window)
            stats = self._ledger.stats_for_window(kind)
            return {"window": kind.value, **stats.to_dict()}

        return self._execute("get_stats", work)

    def get_trend(self, window: Union[WindowKind, str]) -> QueryResult:
        """Hourly candles for 1day, daily candles for 1week and 1month."""
        def work() -> Dict[str, Any]:
            kind = WindowKind.parse(window)
            period, limit = _TREND_PERIODS[kind]
            candle_set = self._candles.get_candles(CandleQuery.for_period(period, limit))
            return {
                "window": kind.value,
                "period": period.value,
                "candles": [c.to_dict() for c in candle_set.candles],
                "current": candle_set.current.to_dict() if candle_set.current else None,
            }

        return self._execute("get_trend", work)

    # =========================================================
    # CANDLE QUERIES
    # =========================================================

    def get_candles(
        self,
        bucket_kind: Union[BucketKind, str] = BucketKind.COUNT,
        bucket_size: Union[int, str, None] = None,
        limit: int = 100,
        include_current: bool = True,
    ) -> QueryResult:
        def work() -> Dict[str, Any]:
            query = self._candle_query(bucket_kind, bucket_size, limit, include_current)
            return self._candles.get_candles(query).to_dict()

        return self._execute("get_candles", work)

    def get_price_change_stats(
        self,
        bucket_kind: Union[BucketKind, str] = BucketKind.COUNT,
        bucket_size: Union[int, str, None] = None,
        limit: int = 50,
    ) -> QueryResult:
        def work() -> Dict[str, Any]:
            query = self._candle_query(bucket_kind, bucket_size, limit, False)
            return self._candles.price_change_stats(query).to_dict()

        return self._execute("get_price_change_stats", work)

    def get_indicators(
        self,
        bucket_kind: Union[BucketKind, str] = BucketKind.COUNT,
        bucket_size: Union[int, str, None] = None,
        limit: int = 100,
    ) -> QueryResult:
        def work() -> Dict[str, Any]:
            query = self._candle_query(bucket_kind, bucket_size, limit, False)
            candles = self._candles.get_candles(query).candles
            return compute_indicators(candles).to_dict()

        return self._execute("get_indicators", work)
