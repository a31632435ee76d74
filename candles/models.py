"""
Candle Models.

============================================================
PURPOSE
============================================================
OHLCV value types derived from the score ledger.

Candles are pure derivations: never persisted as ground truth,
always recomputable from the ledger, and safe to cache.

============================================================
INVARIANTS
============================================================
- low <= min(open, close) <= max(open, close) <= high
- volume == number of events folded into the candle
- count-bucketed CLOSED candles have volume == bucket size

============================================================
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core import constants
from core.exceptions import InvalidQueryError


# ============================================================
# ENUMS
# ============================================================

class BucketKind(Enum):
    """How events are grouped into candles."""

    COUNT = "count"     # fixed number of events per candle
    TIME = "time"       # fixed wall-clock period per candle

    @classmethod
    def parse(cls, value: Any) -> "BucketKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidQueryError(
                f"Unknown bucket kind: {value}",
                parameter="bucket_kind",
                value=value,
            ) from None


class CandlePeriod(Enum):
    """Named time periods for time-bucketed candles."""

    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    FOUR_HOURS = "4h"
    ONE_DAY = "1d"

    @property
    def period_ms(self) -> int:
        return _PERIOD_MS[self]

    @classmethod
    def parse(cls, value: Any) -> "CandlePeriod":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidQueryError(
                f"Unknown candle period: {value}",
                parameter="period",
                value=value,
            ) from None


_PERIOD_MS = {
    CandlePeriod.ONE_MINUTE: constants.MS_PER_MINUTE,
    CandlePeriod.FIVE_MINUTES: 5 * constants.MS_PER_MINUTE,
    CandlePeriod.FIFTEEN_MINUTES: 15 * constants.MS_PER_MINUTE,
    CandlePeriod.ONE_HOUR: constants.MS_PER_HOUR,
    CandlePeriod.FOUR_HOURS: 4 * constants.MS_PER_HOUR,
    CandlePeriod.ONE_DAY: constants.MS_PER_DAY,
}


# ============================================================
# CANDLE
# ============================================================

@dataclass(frozen=True)
class Candle:
    """One OHLCV aggregate over a contiguous slice of events."""

    bucket_start_ms: int
    open: int
    high: int
    low: int
    close: int
    volume: int

    @property
    def change(self) -> int:
        return self.close - self.open

    @property
    def change_percent(self) -> float:
        """Percent change relative to |open|; 0.0 when open is 0."""
        if self.open == 0:
            return 0.0
        return self.change / abs(self.open) * 100

    def is_consistent(self) -> bool:
        """Check the OHLC ordering invariant."""
        return self.low <= min(self.open, self.close) and max(self.open, self.close) <= self.high

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["change"] = self.change
        data["change_percent"] = round(self.change_percent, 4)
        return data


# ============================================================
# QUERIES AND RESULTS
# ============================================================

@dataclass(frozen=True)
class CandleQuery:
    """
    Parameters of one candle request.

    `bucket_size` is events per candle for COUNT buckets and the
    period in milliseconds for TIME buckets.
    """

    bucket_kind: BucketKind
    bucket_size: int
    limit: int
    include_current: bool = True

    def __post_init__(self) -> None:
        if self.bucket_size <= 0:
            raise InvalidQueryError("bucket_size must be positive", "bucket_size", self.bucket_size)
        if not 0 < self.limit <= constants.MAX_CANDLE_LIMIT:
            raise InvalidQueryError(
                f"limit must be between 1 and {constants.MAX_CANDLE_LIMIT}",
                "limit",
                self.limit,
            )

    @classmethod
    def for_period(
        cls,
        period: CandlePeriod,
        limit: int,
        include_current: bool = True,
    ) -> "CandleQuery":
        return cls(BucketKind.TIME, period.period_ms, limit, include_current)

    @property
    def cache_key(self) -> Tuple[str, int, int, bool]:
        return (self.bucket_kind.value, self.bucket_size, self.limit, self.include_current)


@dataclass
class CandleSet:
    """
    Closed candles plus the still-forming current candle.

    The current candle is never merged into `candles`.
    """

    query: CandleQuery
    candles: List[Candle] = field(default_factory=list)
    current: Optional[Candle] = None
    last_update_ms: int = 0
    total_records: int = 0
    cache_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket_kind": self.query.bucket_kind.value,
            "bucket_size": self.query.bucket_size,
            "limit": self.query.limit,
            "candles": [c.to_dict() for c in self.candles],
            "current": self.current.to_dict() if self.current else None,
            "metadata": {
                "last_update_ms": self.last_update_ms,
                "total_records": self.total_records,
                "cache_used": self.cache_used,
            },
        }


@dataclass(frozen=True)
class PriceChangeStats:
    """Summary of candle-to-candle movement."""

    total_change: int = 0
    total_change_percent: float = 0.0
    max_gain: int = 0
    max_loss: int = 0
    positive_count: int = 0
    negative_count: int = 0
    avg_volume: float = 0.0
    volatility: float = 0.0
    win_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
