"""Local SQLite store shared by the catalog and session stores.

Uses SQLAlchemy's native async support with aiosqlite. One LocalStore is built
at startup and handed to every component that reads or writes the store.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlmodel import SQLModel

from tel.errors import PersistenceError

# Registers the table classes on SQLModel.metadata.
from tel.models import tables  # noqa: F401

STORE_DIR_NAME = ".tel"
STORE_FILE_NAME = "tel.db"


class LocalStore:
    """Owns the async engine for the local store and its schema.

    Accepts an AsyncEngine via dependency injection so tests can use an
    in-memory database.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def initialize_schema(self) -> None:
        """Create the store tables if they don't exist."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to initialize local store: {e}") from e
        self._logger.info("local_store_initialized")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session; objects stay readable after commit."""
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            yield session

    async def dispose(self) -> None:
        await self._engine.dispose()


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Foreign keys are enforced on every connection the engine opens.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(url)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    return engine


def default_store_path(home: Path | None = None) -> Path:
    """Return ``~/.tel/tel.db``, creating the directory if needed."""
    store_dir = (home or Path.home()) / STORE_DIR_NAME
    store_dir.mkdir(parents=True, exist_ok=True)
    return store_dir / STORE_FILE_NAME
