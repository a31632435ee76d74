"""
ORM Base for the Score Ledger Tables.

Every ledger table derives from Base. Datetime columns are stored
timezone-aware; score timestamps themselves are integer epoch ms
and live in ordinary BigInteger columns.

IngestedAtMixin records when a row reached the database, which is
independent of the block timestamp it carries. Ledger rows are
append-only, so there is no modification timestamp.
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class IngestedAtMixin:
    """Server-side insertion time (UTC)."""

    ingested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="When the row was written, not the block time",
    )
