"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing for repositories over an injected session:
- Statement helpers (add, get, count, select, delete)
- Translation of SQLAlchemy errors into repository exceptions
- Per-repository logger

Repositories never commit; the caller owns the transaction
(see Database.session_scope).

============================================================
"""

import logging
from abc import ABC
from contextlib import contextmanager
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    DuplicateRecordError,
    QueryError,
    StoreUnavailableError,
)


T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for repositories of one ORM model.

    Usage:
        class ScoreEventRepository(BaseRepository[ScoreEventRecord]):
            def __init__(self, session: Session):
                super().__init__(session, ScoreEventRecord, "ScoreEventRepository")
    """

    def __init__(self, session: Session, model_class: Type[T], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # ERROR TRANSLATION
    # =========================================================

    @contextmanager
    def _guard(self, operation: str, context: Optional[Dict[str, Any]] = None) -> Iterator[None]:
        """Re-raise SQLAlchemy errors raised in the block as repository exceptions."""
        context = context or {}
        try:
            yield
        except SQLAlchemyError as e:
            self._logger.error(f"{operation} failed: {e}", extra={"context": context})
            if isinstance(e, OperationalError):
                raise StoreUnavailableError(
                    str(e.orig or e), self._repository_name, operation, context
                ) from e
            if isinstance(e, IntegrityError) and "unique" in str(e).lower():
                raise DuplicateRecordError(
                    self._repository_name,
                    context.get("key_field", "unknown"),
                    context.get("key", "unknown"),
                ) from e
            raise QueryError(str(e), self._repository_name, operation, context) from e

    # =========================================================
    # STATEMENT HELPERS
    # =========================================================

    def _add(self, entity: T, context: Optional[Dict[str, Any]] = None) -> T:
        """Add and flush so constraint violations surface here."""
        with self._guard("add", context):
            self._session.add(entity)
            self._session.flush()
        return entity

    def _get_by_key(self, key: Any) -> Optional[T]:
        with self._guard("get_by_key", {"key": key}):
            return self._session.get(self._model_class, key)

    def _count(self, *conditions: Any) -> int:
        stmt = select(func.count()).select_from(self._model_class)
        if conditions:
            stmt = stmt.where(*conditions)
        with self._guard("count"):
            return self._session.execute(stmt).scalar() or 0

    def _execute_query(self, stmt: Any) -> List[T]:
        with self._guard("query"):
            return list(self._session.execute(stmt).scalars().all())

    def _execute_scalar(self, stmt: Any) -> Optional[T]:
        with self._guard("query_scalar"):
            return self._session.execute(stmt).scalar_one_or_none()

    def _execute_delete(self, stmt: Any) -> int:
        """Run a bulk delete; returns the affected row count."""
        with self._guard("delete"):
            return self._session.execute(stmt).rowcount or 0
