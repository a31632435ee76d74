"""
Tests for the Score Ledger.

============================================================
PURPOSE
============================================================
Verify the ledger contract:
1. Running cumulative score (with baseline)
2. Out-of-order and duplicate rejection
3. Freshest-first range selection, returned ascending
4. Stats over windows, zeroed when empty
5. Retention cleanup without score recomputation

============================================================
"""

import threading

import pytest

from core import constants
from core.exceptions import InvalidEventError, InvalidQueryError, OutOfOrderEventError
from ledger.ledger import ScoreLedger
from ledger.models import LedgerStats, WindowKind
from ledger.store import InMemoryScoreEventStore

from tests.helpers import BASE_MS, BLOCK_INTERVAL_MS, alternating, seed_ledger


# ============================================================
# APPEND
# ============================================================

class TestAppend:
    """Tests for the only mutation path."""

    def test_cumulative_score_is_running_sum(self, ledger):
        deltas = [1, -1, 1, 1, 1, -1, -1, 1]
        events = seed_ledger(ledger, deltas)

        running = 0
        for event, delta in zip(events, deltas):
            running += delta
            assert event.cumulative_score == running

    def test_baseline_score_applies_to_first_event(self, clock):
        ledger = ScoreLedger(InMemoryScoreEventStore(), clock, baseline_score=100)

        events = seed_ledger(ledger, [-1, -1, 1])

        assert [e.cumulative_score for e in events] == [99, 98, 99]

    def test_gaps_in_sequence_are_tolerated(self, ledger):
        ledger.append(10, BASE_MS, 1)
        event = ledger.append(15, BASE_MS + 1000, 1)

        assert event.cumulative_score == 2
        assert ledger.last_sequence_number == 15

    def test_duplicate_sequence_raises_out_of_order(self, ledger):
        ledger.append(1, BASE_MS, 1)

        with pytest.raises(OutOfOrderEventError) as exc_info:
            ledger.append(1, BASE_MS, -1)

        assert exc_info.value.is_duplicate
        assert ledger.latest().cumulative_score == 1

    def test_regressed_sequence_raises_out_of_order(self, ledger):
        seed_ledger(ledger, [1, 1, 1], start_sequence=5)

        with pytest.raises(OutOfOrderEventError) as exc_info:
            ledger.append(6, BASE_MS, 1)

        assert not exc_info.value.is_duplicate
        assert exc_info.value.last_sequence_number == 7

    @pytest.mark.parametrize("delta", [0, 2, -2])
    def test_rejects_non_unit_delta(self, ledger, delta):
        with pytest.raises(InvalidEventError):
            ledger.append(1, BASE_MS, delta)

        assert ledger.latest() is None

    def test_tail_recovered_from_existing_store(self, store, clock):
        seed_ledger(ScoreLedger(store, clock), [1, 1, -1, 1])

        reopened = ScoreLedger(store, clock)
        event = reopened.append(5, BASE_MS + 20_000, 1)

        assert event.cumulative_score == 3

    def test_concurrent_appends_never_share_a_tail(self, ledger):
        errors = []

        def worker(offset: int) -> None:
            for i in range(200):
                try:
                    ledger.append(offset + i * 4, BASE_MS + i, 1)
                except OutOfOrderEventError:
                    errors.append(offset + i * 4)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = ledger.newest(1000)
        scores = [e.cumulative_score for e in stored]
        assert scores == list(range(1, len(stored) + 1))
        assert len(stored) + len(errors) == 800


# ============================================================
# RANGE QUERIES
# ============================================================

class TestRangeSince:
    """Tests for freshest-first window selection."""

    def test_returns_ascending_sequence_order(self, ledger):
        seed_ledger(ledger, alternating(10))

        events = ledger.range_since(BASE_MS, 100)

        sequences = [e.sequence_number for e in events]
        assert sequences == sorted(sequences)
        assert len(events) == 10

    def test_large_window_surfaces_newest_events(self, ledger):
        seed_ledger(ledger, alternating(5000))

        events = ledger.range_since(BASE_MS, 1000)

        assert len(events) == 1000
        assert events[0].sequence_number == 4001
        assert events[-1].sequence_number == 5000

    def test_respects_min_timestamp(self, ledger):
        seed_ledger(ledger, alternating(10))

        events = ledger.range_since(BASE_MS + 5 * BLOCK_INTERVAL_MS, 100)

        assert [e.sequence_number for e in events] == [6, 7, 8, 9, 10]

    def test_never_exceeds_max_count(self, ledger):
        seed_ledger(ledger, alternating(50))

        for max_count in (1, 7, 49, 50, 51):
            assert len(ledger.range_since(BASE_MS, max_count)) == min(max_count, 50)

    def test_rejects_non_positive_max_count(self, ledger):
        with pytest.raises(InvalidQueryError):
            ledger.range_since(BASE_MS, 0)

    def test_points_in_window_uses_trailing_window(self, ledger, clock):
        day = constants.MS_PER_DAY
        ledger.append(1, BASE_MS - 2 * day, 1)
        ledger.append(2, BASE_MS - day // 2, 1)
        ledger.append(3, BASE_MS, 1)

        points = ledger.points_in_window(WindowKind.ONE_DAY, 100)

        assert [p.sequence_number for p in points] == [2, 3]
        assert len(ledger.points_in_window(WindowKind.ONE_WEEK, 100)) == 3

    def test_newest_returns_tail_ascending(self, ledger):
        seed_ledger(ledger, alternating(10))

        assert [e.sequence_number for e in ledger.newest(3)] == [8, 9, 10]
        assert ledger.newest(0) == []


# ============================================================
# STATS
# ============================================================

class TestStats:
    """Tests for windowed statistics."""

    def test_empty_ledger_returns_zeroed_stats(self, ledger):
        stats = ledger.stats_for_window(WindowKind.ONE_DAY)

        assert stats == LedgerStats()
        assert all(value == 0 for value in stats.to_dict().values())

    def test_stats_fields(self, ledger):
        seed_ledger(ledger, [1, 1, -1, 1, -1, -1, -1])

        stats = ledger.stats_since(BASE_MS)

        assert stats.count == 7
        assert stats.start_score == 1
        assert stats.end_score == -1
        assert stats.min_score == -1
        assert stats.max_score == 2
        assert stats.net_change == -2
        assert stats.positive_count == 3
        assert stats.negative_count == 4
        assert stats.current_score == -1

    def test_empty_window_keeps_current_score(self, ledger, clock):
        seed_ledger(ledger, [1, 1], start_ms=BASE_MS - 10 * constants.MS_PER_DAY)

        stats = ledger.stats_for_window(WindowKind.ONE_DAY)

        assert stats.count == 0
        assert stats.net_change == 0
        assert stats.current_score == 2

    def test_stats_capped_to_newest_events(self, clock):
        ledger = ScoreLedger(InMemoryScoreEventStore(), clock, stats_max_events=10)
        seed_ledger(ledger, [1] * 30)

        stats = ledger.stats_since(BASE_MS)

        assert stats.count == 10
        assert stats.start_score == 21
        assert stats.end_score == 30


# ============================================================
# CLEANUP
# ============================================================

class TestCleanup:
    """Tests for retention cleanup."""

    def test_removes_only_old_events(self, ledger, clock):
        seed_ledger(ledger, alternating(10))
        clock.set_ms(BASE_MS + 5 * BLOCK_INTERVAL_MS + 1000)

        removed = ledger.cleanup_older_than(1000)

        assert removed == 5
        assert [e.sequence_number for e in ledger.newest(100)] == [6, 7, 8, 9, 10]

    def test_surviving_scores_unchanged(self, ledger, clock):
        events = seed_ledger(ledger, [1, 1, 1, -1, 1, 1])
        before = {e.sequence_number: e.cumulative_score for e in events}
        clock.set_ms(BASE_MS + 3 * BLOCK_INTERVAL_MS)

        ledger.cleanup_older_than(0)

        for event in ledger.newest(100):
            assert event.cumulative_score == before[event.sequence_number]

    def test_score_continues_after_full_cleanup(self, ledger, clock):
        seed_ledger(ledger, [1, 1, 1])
        clock.advance(days=365)

        removed = ledger.cleanup_older_than(constants.MS_PER_DAY)
        event = ledger.append(4, clock.now_ms(), 1)

        assert removed == 3
        assert ledger.count() == 1
        assert event.cumulative_score == 4

    def test_empty_ledger_cleanup_is_noop(self, ledger):
        assert ledger.cleanup_older_than(1000) == 0
