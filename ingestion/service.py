"""
Ingestion Service.

============================================================
PURPOSE
============================================================
Entry point for the external block-polling collaborator.

- submit_score_event(): append one +/-1 event, idempotently
- submit_block(): derive the delta from a raw block hash first

Duplicate or regressed sequence numbers are a no-op: logged at
debug level, counted, and reported as "not applied". Storage
failures propagate to the caller.

============================================================
DELTA RULE
============================================================
The last decimal digit of the block hash (0x prefix stripped)
decides the sign: odd -> -1, even -> +1. A hash without any
digit counts as 0, i.e. even.

============================================================
"""

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from core.exceptions import OutOfOrderEventError
from ledger.ledger import ScoreLedger


logger = logging.getLogger(__name__)


def last_hash_digit(block_hash: str) -> int:
    """Last decimal digit in the hash, or 0 when there is none."""
    clean = block_hash[2:] if block_hash.lower().startswith("0x") else block_hash
    for char in reversed(clean):
        if char.isdigit():
            return int(char)
    logger.warning(f"No digit found in block hash: {block_hash}")
    return 0


def delta_from_block_hash(block_hash: str) -> int:
    return -1 if last_hash_digit(block_hash) % 2 == 1 else 1


@dataclass(frozen=True)
class IngestionStatus:
    last_processed_sequence: Optional[int]
    applied: int
    duplicates: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestionService:
    """Single serialized ingestion path into the ledger."""

    def __init__(self, ledger: ScoreLedger):
        self._ledger = ledger
        self._lock = threading.Lock()
        self._applied = 0
        self._duplicates = 0

    @property
    def last_processed_sequence(self) -> Optional[int]:
        return self._ledger.last_sequence_number

    def submit_score_event(self, sequence_number: int, timestamp_ms: int, delta: int) -> bool:
        """
        Apply one event.

        Returns:
            True if appended, False if it was a duplicate/out-of-order no-op

        Raises:
            InvalidEventError: delta not in {-1, +1}
            StorageFailureError: the store failed
        """
        with self._lock:
            try:
                event = self._ledger.append(sequence_number, timestamp_ms, delta)
            except OutOfOrderEventError as e:
                self._duplicates += 1
                logger.debug(f"Ignoring event: {e.message}")
                return False
            self._applied += 1

        logger.debug(f"Ingested block {sequence_number} -> score {event.cumulative_score}")
        return True

    def submit_block(self, block_number: int, block_hash: str, timestamp_ms: int) -> bool:
        """Derive the delta from the block hash and apply it."""
        return self.submit_score_event(block_number, timestamp_ms, delta_from_block_hash(block_hash))

    def status(self) -> IngestionStatus:
        return IngestionStatus(
            last_processed_sequence=self.last_processed_sequence,
            applied=self._applied,
            duplicates=self._duplicates,
        )
