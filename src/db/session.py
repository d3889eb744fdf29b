"""Async SQLAlchemy engine, session factory, and the transactional store."""
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import Settings
from core.exceptions import CatalogError, ConflictError, StorageError
from models.base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    Make pysqlite/aiosqlite honour SQLAlchemy transaction boundaries.

    The driver defers BEGIN until the first DML statement, so reads issued at
    the start of a unit of work would run outside it. Autocommit is turned off
    at the driver level and BEGIN is emitted explicitly instead. Foreign keys
    are off by default in SQLite and are switched on per connection.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:  # noqa: ARG001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def is_lock_contention(error: OperationalError) -> bool:
    """True if the driver gave up waiting for another writer (SQLite busy/locked)."""
    message = str(error.orig).lower()
    return "database is locked" in message or "database is busy" in message


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the async engine for the configured database."""
    if settings.is_sqlite:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            connect_args={"timeout": settings.sqlite_busy_timeout},
        )
        _enable_sqlite_transactions(engine)
        return engine
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay usable after commit."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_schema(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_schema(engine: AsyncEngine) -> None:
    """Drop all tables (used by the seed command)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class TransactionalStore:
    """
    All-or-nothing execution of a unit of work.

    Each scope owns one session and one transaction. Writes inside the scope
    are visible to later reads in the same scope (the session autoflushes) and
    to nobody else until commit. Any exception, including one raised by the
    commit itself, rolls the whole scope back, and the session is closed on
    every exit path.

    Catalog errors propagate unchanged. Unique/foreign key violations and
    SQLite lock contention surface as ConflictError, other SQLAlchemy errors
    as StorageError; exceptions of any other type propagate unchanged after
    the rollback.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[AsyncSession]:
        """Open a transaction scope and yield its session."""
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except CatalogError:
                raise
            except IntegrityError as e:
                logger.warning("storage_conflict", extra={"error": str(e.orig)})
                raise ConflictError(f"Conflicting write: {e.orig}") from e
            except OperationalError as e:
                if not is_lock_contention(e):
                    logger.exception("storage_error")
                    raise StorageError(f"Storage failure: {e}") from e
                logger.warning("storage_conflict", extra={"error": str(e.orig)})
                raise ConflictError(f"Concurrent write in progress: {e.orig}") from e
            except SQLAlchemyError as e:
                logger.exception("storage_error")
                raise StorageError(f"Storage failure: {e}") from e

    async def run_atomic(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run `operation` inside one scope and return its result."""
        async with self.atomic() as session:
            return await operation(session)
