"""
Score Ledger.

============================================================
RESPONSIBILITY
============================================================
Append-only record of score events with a running cumulative
score.

- append() is the only mutation path
- Range queries surface the FRESHEST events of a window
- Cleanup removes old events without touching surviving scores

============================================================
CONCURRENCY
============================================================
Single writer, many readers. append() reads the tail score and
stores the new event under one lock, so two racing appends can
never build on the same stale tail. Reads go straight to the
store and see whatever it has committed at call time.

============================================================
"""

import logging
import threading
from typing import List, Optional

from core import constants
from core.clock import ClockProtocol, SystemClock
from core.exceptions import InvalidEventError, InvalidQueryError, OutOfOrderEventError
from ledger.models import LedgerStats, ScoreEvent, WindowKind
from ledger.store import ScoreEventStore


logger = logging.getLogger(__name__)


class ScoreLedger:
    """
    Append-only score event ledger.

    The tail event is kept in memory once loaded. It survives
    retention cleanup, so new events keep building on the true
    running score even if every stored row has been pruned.
    """

    def __init__(
        self,
        store: ScoreEventStore,
        clock: Optional[ClockProtocol] = None,
        baseline_score: int = constants.DEFAULT_BASELINE_SCORE,
        stats_max_events: int = constants.DEFAULT_STATS_MAX_EVENTS,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._baseline_score = baseline_score
        self._stats_max_events = stats_max_events

        self._write_lock = threading.Lock()
        self._tail: Optional[ScoreEvent] = None
        self._tail_loaded = False

    @property
    def store(self) -> ScoreEventStore:
        return self._store

    @property
    def baseline_score(self) -> int:
        return self._baseline_score

    @property
    def last_sequence_number(self) -> Optional[int]:
        tail = self.latest()
        return tail.sequence_number if tail else None

    # =========================================================
    # WRITE PATH
    # =========================================================

    def append(self, sequence_number: int, timestamp_ms: int, delta: int) -> ScoreEvent:
        """
        Append one event and return it with its cumulative score.

        Raises:
            InvalidEventError: delta not in {-1, +1} or negative values
            OutOfOrderEventError: sequence number not after the tail
            StorageFailureError: the store rejected the write
        """
        if delta not in constants.ALLOWED_DELTAS:
            raise InvalidEventError(f"Delta must be -1 or +1, got {delta}", "delta", delta)
        if sequence_number < 0:
            raise InvalidEventError("Sequence number must be non-negative", "sequence_number", sequence_number)
        if timestamp_ms < 0:
            raise InvalidEventError("Timestamp must be non-negative", "timestamp_ms", timestamp_ms)

        with self._write_lock:
            tail = self._load_tail()
            if tail is not None and sequence_number <= tail.sequence_number:
                raise OutOfOrderEventError(sequence_number, tail.sequence_number)

            previous = tail.cumulative_score if tail is not None else self._baseline_score
            event = ScoreEvent(
                sequence_number=sequence_number,
                timestamp_ms=timestamp_ms,
                delta=delta,
                cumulative_score=previous + delta,
            )

            if not self._store.insert_if_absent(event):
                # Row written outside this ledger instance
                raise OutOfOrderEventError(sequence_number, sequence_number)

            self._tail = event

        logger.debug(
            f"Appended event {sequence_number}: delta={delta:+d} score={event.cumulative_score}"
        )
        return event

    def _load_tail(self) -> Optional[ScoreEvent]:
        if not self._tail_loaded:
            self._tail = self._store.latest()
            self._tail_loaded = True
        return self._tail

    # =========================================================
    # READ PATH
    # =========================================================

    def latest(self) -> Optional[ScoreEvent]:
        """Tail event, or None if nothing was ever appended."""
        if self._tail_loaded:
            return self._tail
        with self._write_lock:
            return self._load_tail()

    def count(self) -> int:
        """Number of events currently stored."""
        return self._store.count()

    def range_since(self, min_timestamp_ms: int, max_count: int) -> List[ScoreEvent]:
        """
        Most recent `max_count` events with timestamp >= min_timestamp_ms.

        Selection is newest-first, then the result is returned in
        ascending sequence order. A window holding more events than
        `max_count` therefore yields its freshest events.
        """
        return self.events_between(min_timestamp_ms, None, max_count)

    def events_between(
        self,
        min_timestamp_ms: Optional[int],
        max_timestamp_ms: Optional[int],
        max_count: int,
    ) -> List[ScoreEvent]:
        """Newest `max_count` events with min <= timestamp < max, ascending."""
        if max_count <= 0:
            raise InvalidQueryError("max_count must be positive", "max_count", max_count)
        events = self._store.newest_since(min_timestamp_ms, max_count, max_timestamp_ms)
        events.reverse()
        return events

    def newest(self, count: int) -> List[ScoreEvent]:
        """Newest `count` events overall, ascending."""
        if count <= 0:
            return []
        return self.events_between(None, None, count)

    def points_in_window(self, window: WindowKind, limit: int) -> List[ScoreEvent]:
        """Freshest events of a trailing window."""
        return self.range_since(self._clock.now_ms() - window.duration_ms, limit)

    def stats_since(self, min_timestamp_ms: int) -> LedgerStats:
        """
        Statistics over the events since a timestamp.

        Empty windows and empty ledgers return zeroed stats.
        """
        events = self.range_since(min_timestamp_ms, self._stats_max_events)
        tail = self.latest()
        return LedgerStats.from_events(
            events,
            current_score=tail.cumulative_score if tail else 0,
        )

    def stats_for_window(self, window: WindowKind) -> LedgerStats:
        return self.stats_since(self._clock.now_ms() - window.duration_ms)

    # =========================================================
    # RETENTION
    # =========================================================

    def cleanup_older_than(self, max_age_ms: int) -> int:
        """
        Delete events with timestamp < now - max_age_ms.

        Surviving events keep their cumulative scores.
        """
        if max_age_ms < 0:
            raise InvalidQueryError("max_age_ms must be non-negative", "max_age_ms", max_age_ms)

        cutoff = self._clock.now_ms() - max_age_ms
        with self._write_lock:
            self._load_tail()
            removed = self._store.delete_older_than(cutoff)

        logger.info(f"Ledger cleanup removed {removed} events older than {cutoff}")
        return removed
