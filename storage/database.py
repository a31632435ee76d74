"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages database connections and sessions.

- Provides connection pooling
- Manages database sessions and transaction boundaries
- Creates the schema
- Verifies connectivity

============================================================
DESIGN PRINCIPLES
============================================================
- One Database instance per application, injected where needed
- PostgreSQL in production, SQLite for local runs and tests
- Explicit transaction management
- Hard failures on persistence errors

============================================================
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import DatabaseConfig
from storage.models.base import Base


logger = logging.getLogger(__name__)


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


# =============================================================
# DATABASE
# =============================================================


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_sqlite_memory(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """
    Engine and session factory for the score event store.

    Usage:
        db = Database(DatabaseConfig(url="sqlite://"))
        db.create_all_tables()
        with db.session_scope() as session:
            ScoreEventRepository(session).insert_if_absent(...)
    """

    def __init__(self, config: Optional[DatabaseConfig] = None) -> None:
        self._config = config or DatabaseConfig()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def url(self) -> str:
        return self._config.url

    def _create_engine(self) -> Engine:
        url = self._config.url
        logger.info(f"Creating database engine for: {url.split('@')[-1]}")

        if _is_sqlite(url):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if _is_sqlite_memory(url):
                # Every session must see the same in-memory database
                kwargs["poolclass"] = StaticPool
            else:
                db_path = url.split("///", 1)[-1]
                if db_path:
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(url, echo=self._config.echo, **kwargs)
        else:
            engine = create_engine(
                url,
                pool_size=self._config.pool_size,
                max_overflow=self._config.max_overflow,
                pool_timeout=self._config.pool_timeout,
                pool_recycle=self._config.pool_recycle,
                pool_pre_ping=True,
                echo=self._config.echo,
            )

        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            logger.debug("Database connection established")

        return engine

    @property
    def engine(self) -> Engine:
        """Get the engine, creating it on first use."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get the session factory, creating it on first use."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    # =========================================================
    # SESSION MANAGEMENT
    # =========================================================

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for explicit transaction boundaries.

        Commits only if no exception occurs.
        Rolls back on ANY exception and re-raises it unchanged, so
        repository exceptions keep their type.
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.error(f"Database transaction failed, rolling back: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================
    # INITIALIZATION
    # =========================================================

    def verify_connection(self) -> bool:
        """
        Verify database connection is working.

        Raises:
            DatabaseConnectionError if connection fails
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
        except OperationalError as e:
            logger.error(f"Database connection failed: {e}")
            raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e

    def create_all_tables(self) -> None:
        """
        Create all tables defined in ORM models.

        Raises:
            DatabaseInitializationError if table creation fails
        """
        from storage import models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseInitializationError(f"Table creation failed: {e}") from e

    def initialize(self) -> None:
        """
        Full database initialization sequence.

        1. Verify connection
        2. Create tables if not exist
        """
        logger.info("Initializing score event store")
        self.verify_connection()
        self.create_all_tables()

    def dispose(self) -> None:
        """Release pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


__all__ = [
    "Database",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
