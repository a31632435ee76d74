"""
Scoring Domain ORM Models.

============================================================
PURPOSE
============================================================
Model for the block score ledger: one row per ingested block,
carrying its +/-1 delta and the running cumulative score.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: RAW (ground truth for every derived candle)
- Mutability: IMMUTABLE (append-only)
- Source: Block ingestion
- Consumers: Score ledger, candle aggregation
- Retention: deleted by age only; survivors are never rewritten

============================================================
MODELS
============================================================
- ScoreEventRecord: One scoring event

============================================================
"""

from sqlalchemy import BigInteger, CheckConstraint, Index, SmallInteger
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, IngestedAtMixin


class ScoreEventRecord(Base, IngestedAtMixin):
    """
    Block scoring event.

    ============================================================
    PURPOSE
    ============================================================
    Stores the atomic unit of the score ledger. The sequence
    number (block number) is the natural, unique key so that
    insert-if-absent is a primary key lookup.

    ============================================================
    INVARIANTS
    ============================================================
    - cumulative_score[i] = cumulative_score[i-1] + delta[i]
      (computed by the ledger at ingestion time)
    - delta in {-1, +1}

    ============================================================
    """

    __tablename__ = "score_events"

    sequence_number: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment="Strictly increasing block number"
    )

    timestamp_ms: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Block wall-clock time, epoch milliseconds"
    )

    delta: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        comment="Score change: +1 or -1"
    )

    cumulative_score: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Running score including this event"
    )

    __table_args__ = (
        CheckConstraint("delta IN (-1, 1)", name="ck_score_events_delta"),
        Index("idx_score_events_timestamp", "timestamp_ms"),
        Index("idx_score_events_timestamp_seq", "timestamp_ms", "sequence_number"),
    )

    def __repr__(self) -> str:
        return (
            f"ScoreEventRecord(seq={self.sequence_number}, ts={self.timestamp_ms}, "
            f"delta={self.delta:+d}, score={self.cumulative_score})"
        )
