"""
Storage Repositories Package.

Data access layer. Repositories receive an injected session and
wrap every database error in a repository exception.
"""

from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    DuplicateRecordError,
    QueryError,
    RepositoryException,
    StoreUnavailableError,
)
from storage.repositories.score_events import ScoreEventRepository

__all__ = [
    "BaseRepository",
    "ScoreEventRepository",
    "RepositoryException",
    "DuplicateRecordError",
    "StoreUnavailableError",
    "QueryError",
]
