"""
Candle Aggregator.

============================================================
PURPOSE
============================================================
Pure functions turning an ascending slice of score events into
OHLCV candles.

MODES:
- Count-bucketed: contiguous chunks of exactly N events; a
  shorter trailing chunk is never a closed candle
- Time-bucketed: fixed wall-clock slots; empty slots skipped

The still-forming current candle is computed by the same fold
and always returned separately from the closed list.

============================================================
"""

import statistics
from typing import Dict, List, Optional, Sequence, Tuple

from candles.models import Candle, PriceChangeStats
from core.clock import floor_to_period
from ledger.models import ScoreEvent


# ============================================================
# OHLCV FOLD
# ============================================================

def build_candle(events: Sequence[ScoreEvent], bucket_start_ms: int) -> Candle:
    """
    Fold a non-empty ascending slice into one candle.

    open/close are the first/last cumulative scores; high/low the
    extremes; volume the event count.
    """
    if not events:
        raise ValueError("Cannot build a candle from zero events")

    scores = [e.cumulative_score for e in events]
    return Candle(
        bucket_start_ms=bucket_start_ms,
        open=scores[0],
        high=max(scores),
        low=min(scores),
        close=scores[-1],
        volume=len(scores),
    )


def count_bucket_start(first_timestamp_ms: int, period_ms: Optional[int]) -> int:
    """Start of a count bucket: period-aligned when a nominal period is set."""
    if period_ms:
        return floor_to_period(first_timestamp_ms, period_ms)
    return first_timestamp_ms


# ============================================================
# COUNT-BUCKETED
# ============================================================

def split_count_buckets(
    events: Sequence[ScoreEvent],
    bucket_size: int,
) -> Tuple[List[Sequence[ScoreEvent]], Sequence[ScoreEvent]]:
    """
    Partition events into complete chunks and a trailing remainder.

    Returns:
        (chunks of exactly bucket_size events, trailing partial chunk)
    """
    if bucket_size <= 0:
        raise ValueError("bucket_size must be positive")

    complete = len(events) - len(events) % bucket_size
    chunks = [events[i:i + bucket_size] for i in range(0, complete, bucket_size)]
    return chunks, events[complete:]


def aggregate_by_count(
    events: Sequence[ScoreEvent],
    bucket_size: int,
    period_ms: Optional[int] = None,
) -> List[Candle]:
    """Closed count-bucketed candles; the partial trailing chunk is dropped."""
    chunks, _ = split_count_buckets(events, bucket_size)
    return [
        build_candle(chunk, count_bucket_start(chunk[0].timestamp_ms, period_ms))
        for chunk in chunks
    ]


def current_count_candle(
    partial: Sequence[ScoreEvent],
    period_ms: Optional[int] = None,
) -> Optional[Candle]:
    """Candle over the trailing partial chunk, or None if it is empty."""
    if not partial:
        return None
    return build_candle(partial, count_bucket_start(partial[0].timestamp_ms, period_ms))


# ============================================================
# TIME-BUCKETED
# ============================================================

def aggregate_by_time(
    events: Sequence[ScoreEvent],
    period_ms: int,
    start_ms: int,
    end_ms: int,
) -> List[Candle]:
    """
    Time-bucketed candles for slots from floor(start) up to end.

    A slot covers [slot_start, slot_start + period). Events outside
    [floor(start), end) are ignored; slots without events produce
    no candle.
    """
    if period_ms <= 0:
        raise ValueError("period_ms must be positive")

    first_slot = floor_to_period(start_ms, period_ms)
    slots: Dict[int, List[ScoreEvent]] = {}
    for event in events:
        if event.timestamp_ms < first_slot or event.timestamp_ms >= end_ms:
            continue
        slot = floor_to_period(event.timestamp_ms, period_ms)
        slots.setdefault(slot, []).append(event)

    return [build_candle(slots[slot], slot) for slot in sorted(slots)]


def current_time_candle(
    events: Sequence[ScoreEvent],
    period_ms: int,
    now_ms: int,
) -> Optional[Candle]:
    """Candle over the events of the slot containing now."""
    slot = floor_to_period(now_ms, period_ms)
    in_slot = [e for e in events if slot <= e.timestamp_ms < slot + period_ms]
    if not in_slot:
        return None
    return build_candle(in_slot, slot)


# ============================================================
# DERIVED STATISTICS
# ============================================================

def percent_change(open_value: int, close_value: int) -> float:
    """Percent change relative to |open|; 0.0 when open is 0."""
    if open_value == 0:
        return 0.0
    return (close_value - open_value) / abs(open_value) * 100


def price_change_stats(candles: Sequence[Candle]) -> PriceChangeStats:
    """
    Movement summary over a candle series.

    max_loss is reported as an absolute value; volatility is the
    population standard deviation of per-candle change.
    """
    if not candles:
        return PriceChangeStats()

    max_gain = 0
    max_loss = 0
    positive = 0
    negative = 0
    changes = []
    for candle in candles:
        change = candle.close - candle.open
        changes.append(change)
        if change > 0:
            positive += 1
            max_gain = max(max_gain, change)
        elif change < 0:
            negative += 1
            max_loss = min(max_loss, change)

    n = len(candles)
    first_open = candles[0].open
    last_close = candles[-1].close

    return PriceChangeStats(
        total_change=last_close - first_open,
        total_change_percent=round(percent_change(first_open, last_close), 4),
        max_gain=max_gain,
        max_loss=abs(max_loss),
        positive_count=positive,
        negative_count=negative,
        avg_volume=round(sum(c.volume for c in candles) / n, 2),
        volatility=round(statistics.pstdev(changes), 4),
        win_rate=round(positive / n * 100, 2),
    )
