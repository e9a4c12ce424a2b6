"""Query execution against backend databases.

Backends are plain SQLAlchemy engines, which are synchronous, so the executor
wraps blocking calls with asyncio.to_thread() to stay consistent with the
async stores. A BackendRegistry maps driver kinds to backend factories; new
backends register a factory instead of adding a branch.
"""

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Protocol

import structlog
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from tel.errors import BackendConnectionError, QueryError
from tel.models.enums import DriverKind
from tel.models.result import Column, ResultSet

DUCKDB_RC_FILE = ".duckdbrc"


class Backend(Protocol):
    """A database that can run a query and hand back raw rows."""

    def connect(self) -> None: ...

    def execute(self, sql: str) -> tuple[list[str], list[Sequence[Any]]]: ...

    def close(self) -> None: ...


BackendFactory = Callable[[str], Backend]


def _diagnostic(error: SQLAlchemyError) -> str:
    """Prefer the driver's own message over SQLAlchemy's wrapper text."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


class SqlAlchemyBackend:
    """Backend over a synchronous SQLAlchemy engine.

    Args:
        url: SQLAlchemy database URL.
        connect_args: Extra keyword arguments for the DBAPI connect call.
        init_script: SQL file executed on every new DBAPI connection, if it exists.
    """

    def __init__(
        self,
        url: str,
        connect_args: dict[str, Any] | None = None,
        init_script: Path | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._url = url
        self._connect_args = connect_args or {}
        self._init_script = init_script
        self._logger = logger or structlog.get_logger(__name__)
        self._engine: Engine | None = None

    def connect(self) -> None:
        """Create the engine and open one connection to prove it is reachable.

        Raises:
            BackendConnectionError: If the driver is missing or the database
                cannot be reached.
        """
        try:
            engine = create_engine(self._url, connect_args=self._connect_args)
            if self._init_script is not None and self._init_script.is_file():
                script = self._init_script.read_text(encoding="utf-8")
                event.listen(engine, "connect", lambda conn, _: self._run_init_script(conn, script))
            with engine.connect():
                pass
        except (SQLAlchemyError, ImportError, OSError) as e:
            message = _diagnostic(e) if isinstance(e, SQLAlchemyError) else str(e)
            raise BackendConnectionError(f"cannot connect to backend: {message}") from e
        self._engine = engine
        self._logger.info("backend_connected", dialect=engine.dialect.name)

    def execute(self, sql: str) -> tuple[list[str], list[Sequence[Any]]]:
        """Run one statement and fetch every row.

        Raises:
            QueryError: If execution or fetching fails.
        """
        if self._engine is None:
            raise QueryError("backend is not connected", sql=sql)
        try:
            with self._engine.connect() as conn:
                result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
                if not result.returns_rows:
                    return [], []
                names = list(result.keys())
                return names, [tuple(row) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise QueryError(_diagnostic(e), sql=sql) from e

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _run_init_script(self, dbapi_connection, script: str) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(script)
        finally:
            cursor.close()
        self._logger.debug("backend_init_script_executed", script=str(self._init_script))


def create_sqlite_backend(connect: str) -> SqlAlchemyBackend:
    url = connect if "://" in connect else f"sqlite:///{connect}"
    return SqlAlchemyBackend(url)


def create_postgres_backend(connect: str) -> SqlAlchemyBackend:
    """Accept postgres URLs or libpq keyword/value connection strings."""
    for prefix in ("postgres://", "postgresql://"):
        if connect.startswith(prefix):
            return SqlAlchemyBackend("postgresql+psycopg://" + connect[len(prefix) :])
    if "://" in connect:
        return SqlAlchemyBackend(connect)
    return SqlAlchemyBackend("postgresql+psycopg://", connect_args={"conninfo": connect})


def create_duckdb_backend(connect: str, home: Path | None = None) -> SqlAlchemyBackend:
    """DuckDB backend that runs ``~/.duckdbrc`` on connect, like the duckdb shell."""
    url = connect if "://" in connect else f"duckdb:///{connect}"
    rc_file = (home or Path.home()) / DUCKDB_RC_FILE
    return SqlAlchemyBackend(url, init_script=rc_file)


class BackendRegistry:
    """Maps driver-kind tags to backend factories."""

    def __init__(self) -> None:
        self._factories: dict[str, BackendFactory] = {}

    def register(self, kind: str, factory: BackendFactory) -> None:
        self._factories[kind.lower()] = factory

    def create(self, kind: str, connect: str) -> Backend:
        """Build an unconnected backend for a driver kind.

        Raises:
            BackendConnectionError: If no factory is registered for the kind.
        """
        factory = self._factories.get(kind.lower())
        if factory is None:
            raise BackendConnectionError(f"unsupported driver kind: {kind!r}")
        return factory(connect)

    @property
    def kinds(self) -> list[str]:
        return sorted(self._factories)


def create_default_registry() -> BackendRegistry:
    registry = BackendRegistry()
    registry.register(DriverKind.SQLITE, create_sqlite_backend)
    registry.register(DriverKind.POSTGRES, create_postgres_backend)
    registry.register(DriverKind.PGX, create_postgres_backend)
    registry.register(DriverKind.DUCKDB, create_duckdb_backend)
    return registry


def normalize_value(value: Any) -> str:
    """Render a cell value as display text."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    return str(value)


class QueryExecutor:
    """Executes SQL on one backend and normalizes the result.

    Every call runs the query again; nothing is cached.
    """

    def __init__(
        self,
        backend: Backend,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._backend = backend
        self._logger = logger or structlog.get_logger(__name__)

    async def connect(self) -> None:
        await asyncio.to_thread(self._backend.connect)

    async def execute(self, sql: str) -> ResultSet:
        """Run a query and return upper-cased columns and string rows.

        Raises:
            QueryError: If the backend fails to run the query.
        """
        self._logger.debug("query_started", sql=sql)
        try:
            names, raw_rows = await asyncio.to_thread(self._backend.execute, sql)
        except QueryError as e:
            self._logger.warning("query_failed", sql=sql, error=str(e))
            raise

        result = ResultSet(
            columns=[Column(name=name) for name in names],
            rows=[[normalize_value(value) for value in row] for row in raw_rows],
        )
        self._logger.info("query_executed", row_count=len(result.rows), column_count=len(result.columns))
        return result

    async def close(self) -> None:
        await asyncio.to_thread(self._backend.close)
