"""
Ledger Event Stores.

============================================================
PURPOSE
============================================================
The persistence contract the ledger depends on, and its two
implementations.

CONTRACT:
- insert-if-absent by unique key (sequence number)
- newest-N scan by timestamp range (descending, with limit)
- delete-by-predicate (timestamp older than a cutoff)

InMemoryScoreEventStore backs tests and single-process runs.
SqlScoreEventStore goes through the SQLAlchemy repository layer
and converts repository errors into StorageFailureError.

============================================================
"""

import bisect
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import StorageFailureError
from ledger.models import ScoreEvent
from storage.database import Database
from storage.models.scoring import ScoreEventRecord
from storage.repositories.exceptions import RepositoryException
from storage.repositories.score_events import ScoreEventRepository


logger = logging.getLogger(__name__)

R = TypeVar("R")


# ============================================================
# CONTRACT
# ============================================================

class ScoreEventStore(ABC):
    """Durable store of score events."""

    @abstractmethod
    def insert_if_absent(self, event: ScoreEvent) -> bool:
        """Insert the event; return False if its sequence number exists."""

    @abstractmethod
    def latest(self) -> Optional[ScoreEvent]:
        """Event with the highest sequence number."""

    @abstractmethod
    def newest_since(
        self,
        min_timestamp_ms: Optional[int],
        limit: int,
        max_timestamp_ms: Optional[int] = None,
    ) -> List[ScoreEvent]:
        """
        Newest events with min <= timestamp < max.

        Returns at most `limit` events in DESCENDING sequence order.
        """

    @abstractmethod
    def count(self) -> int:
        """Number of stored events."""

    @abstractmethod
    def delete_older_than(self, cutoff_ms: int) -> int:
        """Delete events with timestamp < cutoff; return removed count."""


# ============================================================
# IN-MEMORY STORE
# ============================================================

class InMemoryScoreEventStore(ScoreEventStore):
    """
    List-backed store kept in ascending sequence order.

    Thread-safe; reads copy out under the lock so callers see a
    consistent snapshot.
    """

    def __init__(self) -> None:
        self._events: List[ScoreEvent] = []
        self._sequences: List[int] = []
        self._lock = threading.RLock()

    def insert_if_absent(self, event: ScoreEvent) -> bool:
        with self._lock:
            idx = bisect.bisect_left(self._sequences, event.sequence_number)
            if idx < len(self._sequences) and self._sequences[idx] == event.sequence_number:
                return False
            self._sequences.insert(idx, event.sequence_number)
            self._events.insert(idx, event)
            return True

    def latest(self) -> Optional[ScoreEvent]:
        with self._lock:
            return self._events[-1] if self._events else None

    def newest_since(
        self,
        min_timestamp_ms: Optional[int],
        limit: int,
        max_timestamp_ms: Optional[int] = None,
    ) -> List[ScoreEvent]:
        result: List[ScoreEvent] = []
        if limit <= 0:
            return result
        with self._lock:
            for event in reversed(self._events):
                if min_timestamp_ms is not None and event.timestamp_ms < min_timestamp_ms:
                    continue
                if max_timestamp_ms is not None and event.timestamp_ms >= max_timestamp_ms:
                    continue
                result.append(event)
                if len(result) >= limit:
                    break
        return result

    def count(self) -> int:
        with self._lock:
            return len(self._events)

    def delete_older_than(self, cutoff_ms: int) -> int:
        with self._lock:
            kept = [e for e in self._events if e.timestamp_ms >= cutoff_ms]
            removed = len(self._events) - len(kept)
            self._events = kept
            self._sequences = [e.sequence_number for e in kept]
            return removed


# ============================================================
# SQL STORE
# ============================================================

def _to_event(record: ScoreEventRecord) -> ScoreEvent:
    return ScoreEvent(
        sequence_number=record.sequence_number,
        timestamp_ms=record.timestamp_ms,
        delta=record.delta,
        cumulative_score=record.cumulative_score,
    )


class SqlScoreEventStore(ScoreEventStore):
    """
    Store backed by the score_events table.

    Each call runs in its own transaction. Any repository or
    SQLAlchemy error is surfaced as StorageFailureError; nothing
    is retried here.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def _run(self, operation: str, work: Callable[[ScoreEventRepository], R]) -> R:
        try:
            with self._database.session_scope() as session:
                return work(ScoreEventRepository(session))
        except (RepositoryException, SQLAlchemyError) as e:
            logger.error(f"Score event store {operation} failed: {e}")
            raise StorageFailureError(
                f"Score event store {operation} failed: {e}",
                operation=operation,
                cause=e,
            ) from e

    def insert_if_absent(self, event: ScoreEvent) -> bool:
        return self._run(
            "insert_if_absent",
            lambda repo: repo.insert_if_absent(
                sequence_number=event.sequence_number,
                timestamp_ms=event.timestamp_ms,
                delta=event.delta,
                cumulative_score=event.cumulative_score,
            ),
        )

    def latest(self) -> Optional[ScoreEvent]:
        def work(repo: ScoreEventRepository) -> Optional[ScoreEvent]:
            record = repo.get_latest()
            return _to_event(record) if record is not None else None

        return self._run("latest", work)

    def newest_since(
        self,
        min_timestamp_ms: Optional[int],
        limit: int,
        max_timestamp_ms: Optional[int] = None,
    ) -> List[ScoreEvent]:
        if limit <= 0:
            return []
        return self._run(
            "newest_since",
            lambda repo: [
                _to_event(r)
                for r in repo.list_newest_since(min_timestamp_ms, limit, max_timestamp_ms)
            ],
        )

    def count(self) -> int:
        return self._run("count", lambda repo: repo.count_events())

    def delete_older_than(self, cutoff_ms: int) -> int:
        return self._run("delete_older_than", lambda repo: repo.delete_older_than(cutoff_ms))
