"""
Ledger Models.

============================================================
PURPOSE
============================================================
Value types of the score ledger.

- ScoreEvent: one immutable +1/-1 event with its running score
- WindowKind: trailing query windows (1day, 1week, 1month)
- LedgerStats: aggregate over a window of events

============================================================
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from core import constants
from core.exceptions import InvalidQueryError


# ============================================================
# WINDOWS
# ============================================================

class WindowKind(Enum):
    """Trailing time windows supported by the query surface."""

    ONE_DAY = "1day"
    ONE_WEEK = "1week"
    ONE_MONTH = "1month"

    @property
    def duration_ms(self) -> int:
        return _WINDOW_DURATIONS_MS[self]

    @classmethod
    def parse(cls, value: Any) -> "WindowKind":
        """Accept an enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidQueryError(
                f"Unknown window kind: {value}",
                parameter="window",
                value=value,
            ) from None


_WINDOW_DURATIONS_MS = {
    WindowKind.ONE_DAY: constants.MS_PER_DAY,
    WindowKind.ONE_WEEK: 7 * constants.MS_PER_DAY,
    WindowKind.ONE_MONTH: 30 * constants.MS_PER_DAY,
}


# ============================================================
# EVENTS
# ============================================================

@dataclass(frozen=True)
class ScoreEvent:
    """
    One scoring event.

    Created once at ingestion, immutable afterwards. The
    cumulative score is anchored at ingestion time and is never
    recomputed, not even after retention cleanup.
    """

    sequence_number: int
    timestamp_ms: int
    delta: int
    cumulative_score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================
# STATISTICS
# ============================================================

@dataclass(frozen=True)
class LedgerStats:
    """Aggregate statistics over a window of events."""

    count: int = 0
    min_score: int = 0
    max_score: int = 0
    start_score: int = 0
    end_score: int = 0
    net_change: int = 0
    positive_count: int = 0
    negative_count: int = 0
    current_score: int = 0

    @classmethod
    def from_events(
        cls,
        events: Iterable[ScoreEvent],
        current_score: Optional[int] = None,
    ) -> "LedgerStats":
        """
        Compute stats over ascending events.

        An empty input yields all-zero stats (current_score aside).
        """
        events = list(events)
        current = current_score or 0
        if not events:
            return cls(current_score=current)

        scores = [e.cumulative_score for e in events]
        positive = sum(1 for e in events if e.delta > 0)
        start = scores[0]
        end = scores[-1]

        return cls(
            count=len(events),
            min_score=min(scores),
            max_score=max(scores),
            start_score=start,
            end_score=end,
            net_change=end - start,
            positive_count=positive,
            negative_count=len(events) - positive,
            current_score=current,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
