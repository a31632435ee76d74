"""
Tests for the candle aggregation functions.

============================================================
PURPOSE
============================================================
Verify the OHLCV fold and both bucketing modes:
1. Count buckets close only at exactly N events
2. Time buckets follow wall-clock slots and skip empty ones
3. Derived movement statistics

============================================================
"""

import pytest

from candles import aggregator
from candles.models import Candle
from ledger.models import ScoreEvent

from tests.helpers import BASE_MS, alternating, seed_ledger


MINUTE_MS = 60_000


def events_from(ledger, deltas, **kwargs):
    return seed_ledger(ledger, deltas, **kwargs)


# ============================================================
# OHLCV FOLD
# ============================================================

class TestBuildCandle:
    """Tests for folding events into one candle."""

    def test_ohlcv_fields(self, ledger):
        events = events_from(ledger, [1, 1, -1, -1, -1, 1])  # 1 2 1 0 -1 0

        candle = aggregator.build_candle(events, BASE_MS)

        assert candle.open == 1
        assert candle.high == 2
        assert candle.low == -1
        assert candle.close == 0
        assert candle.volume == 6
        assert candle.is_consistent()

    def test_empty_slice_rejected(self):
        with pytest.raises(ValueError):
            aggregator.build_candle([], BASE_MS)


# ============================================================
# COUNT-BUCKETED
# ============================================================

class TestCountBuckets:
    """Tests for count-bucketed aggregation."""

    def test_four_events_two_candles(self, ledger):
        events = events_from(ledger, [1, -1, 1, 1])  # 1 0 1 2

        candles = aggregator.aggregate_by_count(events, 2)

        assert len(candles) == 2
        first, second = candles
        assert (first.open, first.high, first.low, first.close, first.volume) == (1, 1, 0, 0, 2)
        assert (second.open, second.high, second.low, second.close, second.volume) == (1, 2, 1, 2, 2)

    def test_partial_trailing_chunk_is_not_closed(self, ledger):
        events = events_from(ledger, alternating(7))

        candles = aggregator.aggregate_by_count(events, 3)
        chunks, partial = aggregator.split_count_buckets(events, 3)

        assert len(candles) == 2
        assert all(c.volume == 3 for c in candles)
        assert [e.sequence_number for e in partial] == [7]
        assert len(chunks) == 2

    def test_fewer_events_than_bucket_yields_nothing(self, ledger):
        events = events_from(ledger, [1, 1, 1])

        assert aggregator.aggregate_by_count(events, 20) == []

    def test_bucket_start_aligned_to_nominal_period(self, ledger):
        events = events_from(ledger, [1] * 4, start_ms=BASE_MS + 7_500)

        candles = aggregator.aggregate_by_count(events, 2, period_ms=MINUTE_MS)
        raw = aggregator.aggregate_by_count(events, 2)

        assert candles[0].bucket_start_ms == BASE_MS
        assert raw[0].bucket_start_ms == BASE_MS + 7_500

    def test_current_candle_from_partial(self, ledger):
        events = events_from(ledger, [1, 1, 1, -1, -1])
        _, partial = aggregator.split_count_buckets(events, 2)

        current = aggregator.current_count_candle(partial)

        assert current.volume == 1
        assert current.close == 1
        assert aggregator.current_count_candle([]) is None

    def test_rejects_non_positive_size(self, ledger):
        with pytest.raises(ValueError):
            aggregator.split_count_buckets([], 0)


# ============================================================
# TIME-BUCKETED
# ============================================================

class TestTimeBuckets:
    """Tests for wall-clock aggregation."""

    def test_slots_follow_period(self, ledger):
        # 40 events, 3s apart, starting on a minute boundary -> 20 per minute
        events = events_from(ledger, alternating(40))

        candles = aggregator.aggregate_by_time(events, MINUTE_MS, BASE_MS, BASE_MS + 2 * MINUTE_MS)

        assert [c.bucket_start_ms for c in candles] == [BASE_MS, BASE_MS + MINUTE_MS]
        assert [c.volume for c in candles] == [20, 20]

    def test_empty_slots_are_skipped(self, ledger):
        ledger.append(1, BASE_MS + 1_000, 1)
        ledger.append(2, BASE_MS + 3 * MINUTE_MS + 5_000, 1)
        events = ledger.newest(10)

        candles = aggregator.aggregate_by_time(events, MINUTE_MS, BASE_MS, BASE_MS + 5 * MINUTE_MS)

        assert [c.bucket_start_ms for c in candles] == [BASE_MS, BASE_MS + 3 * MINUTE_MS]

    def test_events_outside_range_ignored(self, ledger):
        events = events_from(ledger, [1] * 60)  # spans three minutes

        candles = aggregator.aggregate_by_time(
            events, MINUTE_MS, BASE_MS + MINUTE_MS, BASE_MS + 2 * MINUTE_MS
        )

        assert len(candles) == 1
        assert candles[0].bucket_start_ms == BASE_MS + MINUTE_MS
        assert candles[0].volume == 20

    def test_current_time_candle(self, ledger):
        events = events_from(ledger, [1] * 25)

        current = aggregator.current_time_candle(events, MINUTE_MS, BASE_MS + MINUTE_MS + 100)

        assert current.bucket_start_ms == BASE_MS + MINUTE_MS
        assert current.volume == 5
        assert aggregator.current_time_candle(events, MINUTE_MS, BASE_MS + 10 * MINUTE_MS) is None


# ============================================================
# DERIVED STATISTICS
# ============================================================

class TestPriceChange:
    """Tests for movement statistics."""

    def test_percent_change_guards_zero_open(self):
        assert aggregator.percent_change(0, 5) == 0.0
        assert aggregator.percent_change(10, 15) == 50.0
        assert aggregator.percent_change(-10, -5) == 50.0

    def test_candle_change_percent(self):
        candle = Candle(bucket_start_ms=0, open=4, high=6, low=3, close=5, volume=20)

        assert candle.change == 1
        assert candle.change_percent == 25.0
        assert Candle(0, 0, 1, 0, 1, 2).change_percent == 0.0

    def test_price_change_stats(self):
        candles = [
            Candle(0, open=0, high=2, low=0, close=2, volume=20),
            Candle(MINUTE_MS, open=2, high=3, low=0, close=0, volume=20),
            Candle(2 * MINUTE_MS, open=0, high=1, low=0, close=1, volume=20),
        ]

        stats = aggregator.price_change_stats(candles)

        assert stats.total_change == 1
        assert stats.total_change_percent == 0.0
        assert stats.max_gain == 2
        assert stats.max_loss == 2
        assert stats.positive_count == 2
        assert stats.negative_count == 1
        assert stats.avg_volume == 20.0
        assert stats.volatility == pytest.approx(1.6997, abs=1e-4)
        assert stats.win_rate == 66.67

    def test_price_change_stats_empty(self):
        stats = aggregator.price_change_stats([])

        assert stats.total_change == 0
        assert stats.win_rate == 0.0
