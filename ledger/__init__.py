"""
Score Ledger Package.

Append-only store of block score events with a running
cumulative score, plus the persistence contract behind it.
"""

from ledger.ledger import ScoreLedger
from ledger.models import LedgerStats, ScoreEvent, WindowKind
from ledger.store import InMemoryScoreEventStore, ScoreEventStore, SqlScoreEventStore

__all__ = [
    "ScoreLedger",
    "ScoreEvent",
    "LedgerStats",
    "WindowKind",
    "ScoreEventStore",
    "InMemoryScoreEventStore",
    "SqlScoreEventStore",
]
