"""
Real-Time Messages.

============================================================
PURPOSE
============================================================
The three message kinds pushed to subscribers. Every message
carries the publish timestamp and a payload.

- ScoreDelta: the current ledger tip
- CandleUpdate: current candle plus the last K closed candles
- StatsUpdate: aggregate statistics over a short recent window

Delivery is best-effort and at-most-once per cycle.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from candles.models import Candle, PriceChangeStats
from ledger.models import LedgerStats


class MessageKind(Enum):
    """Kinds of messages a subscriber can ask for."""

    SCORE_DELTA = "score_delta"
    CANDLE_UPDATE = "candle_update"
    STATS_UPDATE = "stats_update"


@dataclass(frozen=True)
class ScoreDelta:
    """Newest event at the time of the cycle (intermediate events are not replayed)."""

    timestamp_ms: int
    sequence_number: int
    delta: int
    cumulative_score: int

    kind = MessageKind.SCORE_DELTA

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "timestamp_ms": self.timestamp_ms,
            "data": {
                "sequence_number": self.sequence_number,
                "delta": self.delta,
                "cumulative_score": self.cumulative_score,
            },
        }


@dataclass(frozen=True)
class CandleUpdate:
    """Freshly computed current candle with recent closed candles."""

    timestamp_ms: int
    current: Optional[Candle]
    recent: List[Candle] = field(default_factory=list)
    bucket_size: int = 0

    kind = MessageKind.CANDLE_UPDATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "timestamp_ms": self.timestamp_ms,
            "data": {
                "bucket_size": self.bucket_size,
                "current": self.current.to_dict() if self.current else None,
                "recent": [c.to_dict() for c in self.recent],
            },
        }


@dataclass(frozen=True)
class StatsUpdate:
    """Ledger statistics over the recent window plus candle movement."""

    timestamp_ms: int
    window_ms: int
    stats: LedgerStats
    price_change: PriceChangeStats

    kind = MessageKind.STATS_UPDATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "timestamp_ms": self.timestamp_ms,
            "data": {
                "window_ms": self.window_ms,
                "stats": self.stats.to_dict(),
                "price_change": self.price_change.to_dict(),
            },
        }


Message = Union[ScoreDelta, CandleUpdate, StatsUpdate]
