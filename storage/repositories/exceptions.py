"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Every SQLAlchemy error raised inside a repository is re-raised
as one of these, tagged with the repository and operation.

The ledger's SQL store converts them into StorageFailureError
at the storage contract boundary.

============================================================
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """Base exception for all repository operations."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")


class DuplicateRecordError(RepositoryException):
    """Unique key already present on insert."""

    def __init__(self, repository_name: str, key_field: str, key: Any) -> None:
        super().__init__(
            f"{key_field}={key} already stored",
            repository_name,
            "add",
            {"field": key_field, "value": str(key)},
        )
        self.key = key


class StoreUnavailableError(RepositoryException):
    """Database unreachable: connection refused, timeout, pool exhaustion."""


class QueryError(RepositoryException):
    """Statement failed for any other reason."""


__all__ = [
    "RepositoryException",
    "DuplicateRecordError",
    "StoreUnavailableError",
    "QueryError",
]
