"""
Score Event Repository.

============================================================
PURPOSE
============================================================
Data access for the score_events table. Implements the
persistence contract the ledger relies on:

- insert-if-absent by unique key (sequence number)
- newest-N range scan by timestamp (descending, with limit)
- delete-by-predicate (older than a cutoff)

============================================================
DATA LIFECYCLE
============================================================
- Stage: RAW
- Mutability: APPEND-ONLY
- No update method exists

============================================================
"""

from typing import List, Optional

from sqlalchemy import delete, desc, select
from sqlalchemy.orm import Session

from storage.models.scoring import ScoreEventRecord
from storage.repositories.base import BaseRepository


class ScoreEventRepository(BaseRepository[ScoreEventRecord]):
    """
    Repository for block score events.

    ============================================================
    SCOPE
    ============================================================
    Append, look up and prune ScoreEventRecord rows. All reads
    return ORM rows; conversion to domain values happens in the
    ledger store.

    ============================================================
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, ScoreEventRecord, "ScoreEventRepository")

    # =========================================================
    # WRITE OPERATIONS
    # =========================================================

    def insert_if_absent(
        self,
        sequence_number: int,
        timestamp_ms: int,
        delta: int,
        cumulative_score: int,
    ) -> bool:
        """
        Insert an event unless its sequence number already exists.

        Args:
            sequence_number: Unique block number
            timestamp_ms: Block time in epoch milliseconds
            delta: +1 or -1
            cumulative_score: Running score including this event

        Returns:
            True if inserted, False if the key was already present
        """
        if self._get_by_key(sequence_number) is not None:
            self._logger.debug(f"Event {sequence_number} already stored, skipping insert")
            return False

        entity = ScoreEventRecord(
            sequence_number=sequence_number,
            timestamp_ms=timestamp_ms,
            delta=delta,
            cumulative_score=cumulative_score,
        )
        self._add(entity, {"key_field": "sequence_number", "key": sequence_number})
        return True

    def delete_older_than(self, cutoff_ms: int) -> int:
        """
        Delete events whose timestamp is strictly before the cutoff.

        Args:
            cutoff_ms: Epoch milliseconds

        Returns:
            Number of rows removed
        """
        stmt = delete(ScoreEventRecord).where(ScoreEventRecord.timestamp_ms < cutoff_ms)
        return self._execute_delete(stmt)

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def get_latest(self) -> Optional[ScoreEventRecord]:
        """Get the event with the highest sequence number."""
        stmt = (
            select(ScoreEventRecord)
            .order_by(desc(ScoreEventRecord.sequence_number))
            .limit(1)
        )
        return self._execute_scalar(stmt)

    def list_newest_since(
        self,
        min_timestamp_ms: Optional[int],
        limit: int,
        max_timestamp_ms: Optional[int] = None,
    ) -> List[ScoreEventRecord]:
        """
        List the newest events within a timestamp range.

        Args:
            min_timestamp_ms: Inclusive lower bound (None = no bound)
            limit: Maximum records to return
            max_timestamp_ms: Exclusive upper bound (None = no bound)

        Returns:
            Records in DESCENDING sequence order
        """
        stmt = select(ScoreEventRecord)
        if min_timestamp_ms is not None:
            stmt = stmt.where(ScoreEventRecord.timestamp_ms >= min_timestamp_ms)
        if max_timestamp_ms is not None:
            stmt = stmt.where(ScoreEventRecord.timestamp_ms < max_timestamp_ms)
        stmt = stmt.order_by(desc(ScoreEventRecord.sequence_number)).limit(limit)
        return self._execute_query(stmt)

    def count_events(self) -> int:
        """Count all stored events."""
        return self._count()
