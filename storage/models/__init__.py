"""
Storage Models Package.

This package contains the ORM models for the score system database.

============================================================
MODEL ORGANIZATION
============================================================

Scoring (scoring.py)
- ScoreEventRecord

============================================================
"""

from storage.models.base import Base, IngestedAtMixin
from storage.models.scoring import ScoreEventRecord

__all__ = [
    "Base",
    "IngestedAtMixin",
    "ScoreEventRecord",
]
