"""Factory functions for wiring the browser.

Builds the local store, the catalog and session stores, the backend executor
and the interaction controller, and replays a saved session when a token is
given.
"""

from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict

from tel.errors import NotFoundError, TelError
from tel.models.enums import ViewMode
from tel.services.catalog_store import CatalogStore
from tel.services.controller import InteractionController
from tel.services.executor import BackendRegistry, QueryExecutor, create_default_registry
from tel.services.filter import load_placeholder_args, substitute_placeholders
from tel.services.local_store import LocalStore, create_async_engine_from_path
from tel.services.session_store import SessionStore


class BrowseRequest(BaseModel):
    """Selectors and options for one browse invocation."""

    item: str
    sql_name: str
    db_name: str
    filter_text: str = ""
    args_path: Path | None = None
    token: str | None = None
    view_mode: ViewMode = ViewMode.TABLE

    model_config = ConfigDict(frozen=True)


def create_local_store(db_path: Path | str) -> LocalStore:
    """Create a LocalStore backed by a SQLite file."""
    logger = structlog.get_logger(__name__)
    engine = create_async_engine_from_path(str(db_path))
    return LocalStore(engine=engine, logger=logger)


def create_test_local_store() -> LocalStore:
    """Create a LocalStore over in-memory SQLite for tests."""
    return create_local_store(":memory:")


async def open_browser(
    request: BrowseRequest,
    store: LocalStore,
    registry: BackendRegistry | None = None,
) -> InteractionController:
    """Resolve a browse request into a started controller.

    Steps: look up the connection and query, substitute placeholder args,
    load the filter saved under the request token, connect to the backend, run
    the query, then restore the saved row. Missing session data is only
    logged; the backend is closed if any later step fails.

    Raises:
        NotFoundError: If the connection or query name is unknown.
        ConfigParseError: If the display config or args file is malformed.
        BackendConnectionError: If the backend cannot be reached.
        QueryError: If the base query fails.
        EmptyResultError: If the base query returns no data.
        PersistenceError: If the stored session cannot be read.
    """
    logger = structlog.get_logger(__name__)
    catalog = CatalogStore(store, logger=logger)
    sessions = SessionStore(store, logger=logger)

    await store.initialize_schema()
    connection = await catalog.get_connection(request.db_name)
    query = await catalog.get_query(request.sql_name)
    logger.info(
        "browse_resolved",
        connection=connection.name,
        driver=connection.driver,
        query=query.name,
        query_id=query.id,
    )

    sql = query.sql
    if request.args_path is not None:
        sql = substitute_placeholders(sql, load_placeholder_args(request.args_path))
        logger.debug("placeholders_substituted", sql=sql)

    initial_filter = request.filter_text
    if not initial_filter and request.token:
        try:
            initial_filter = await sessions.lookup_filter(request.token, query.id)
            logger.info("session_filter_loaded", token=request.token, filter=initial_filter)
        except NotFoundError:
            logger.warning("session_filter_missing", token=request.token, query_id=query.id)

    backend = (registry or create_default_registry()).create(connection.driver, connection.connect)
    executor = QueryExecutor(backend, logger=logger)
    await executor.connect()

    controller = InteractionController(
        query=query,
        sql=sql,
        item_name=request.item,
        connection_id=connection.id,
        executor=executor,
        catalog=catalog,
        sessions=sessions,
        view_mode=request.view_mode,
        token=request.token,
        logger=logger,
    )
    try:
        await controller.start(initial_filter)
        if request.token:
            try:
                digest = await sessions.lookup_digest(request.token, query.id)
                controller.select_row_by_digest(digest)
            except NotFoundError:
                logger.warning("session_digest_missing", token=request.token, query_id=query.id)
    except TelError:
        await controller.close()
        raise

    return controller
