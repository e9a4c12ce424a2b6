"""Terminal browser for named SQL queries.

Provides the interactive ``browse`` command plus administrative commands to
register connections and queries in the local store.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional, TextIO, TypeVar

import structlog
import typer

from tel.errors import TelError
from tel.models.enums import ViewMode
from tel.services.catalog_store import CatalogStore
from tel.services.executor import create_default_registry
from tel.services.factory import BrowseRequest, create_local_store, open_browser
from tel.services.local_store import LocalStore, default_store_path
from tel.services.session_store import SessionStore

T = TypeVar("T")

LOG_FILE_NAME = "tel.log"


def configure_logging(stream: TextIO) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=lambda *args: structlog.PrintLogger(file=stream),
        wrapper_class=structlog.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=False,
    )


configure_logging(sys.stderr)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="tel",
    help="""Browse named SQL queries in the terminal and resume where you left off.

Examples:

  # Register a database and a query
  tel add-connection shop --driver sqlite --connect ./shop.db
  tel add-query users --sql-text "SELECT id, name FROM users" --config '{"widths": {"NAME": 30}}'

  # Browse, then resume later with the printed session token
  tel browse --item customer --sql users --db shop
  tel browse --item customer --sql users --db shop --uid 3f2a...""",
    rich_markup_mode="markdown",
)


def _resolve_store_path(store: Optional[str]) -> Path:
    return Path(store) if store else default_store_path()


def _run_with_store(store: Optional[str], action: Callable[[LocalStore], Awaitable[T]]) -> T:
    """Run an async action against the local store, exiting 1 on tel errors."""

    async def run() -> T:
        local_store = create_local_store(_resolve_store_path(store))
        try:
            await local_store.initialize_schema()
            return await action(local_store)
        finally:
            await local_store.dispose()

    try:
        return asyncio.run(run())
    except TelError as e:
        logger.error("command_failed", error=str(e), error_type=type(e).__name__)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


store_option = typer.Option(
    None,
    "--store",
    envvar="TEL_STORE",
    help="Path of the local store (default: ~/.tel/tel.db)",
)


@app.command()
def browse(
    item: str = typer.Option("", "--item", "-i", help="Item name to save column values under"),
    sql: str = typer.Option("", "--sql", "-s", help="Name of the stored query"),
    db: str = typer.Option("", "--db", "-d", help="Name of the registered connection"),
    filter_text: str = typer.Option("", "--filter", "-f", help="Initial filter predicate"),
    args: Optional[str] = typer.Option(
        None,
        "--args",
        "-a",
        help="JSON file with values for :placeholders in the query",
    ),
    uid: Optional[str] = typer.Option(None, "--uid", "-u", help="Session token to resume"),
    view: ViewMode = typer.Option(ViewMode.TABLE, "--view", "-v", help="Show rows as a table or the first row as columns"),
    store: Optional[str] = store_option,
    log_file: Optional[str] = typer.Option(
        None,
        "--log-file",
        envvar="TEL_LOG_FILE",
        help="Log file (default: ~/.tel/tel.log)",
    ),
) -> None:
    """Browse the results of a stored query interactively."""
    for selector, value in (("item", item), ("sql", sql), ("db", db)):
        if not value:
            logger.error("missing_selector", selector=selector)
            typer.echo(f"Error: --{selector} is required", err=True)
            raise typer.Exit(1)

    log_path = Path(log_file) if log_file else default_store_path().parent / LOG_FILE_NAME
    previous_config = structlog.get_config()
    with log_path.open("a", encoding="utf-8") as log_stream:
        configure_logging(log_stream)
        try:
            token = _browse(
                BrowseRequest(
                    item=item,
                    sql_name=sql,
                    db_name=db,
                    filter_text=filter_text,
                    args_path=Path(args) if args else None,
                    token=uid or None,
                    view_mode=view,
                ),
                store,
            )
        finally:
            structlog.configure(**previous_config)

    if token:
        typer.echo(f"session: {token}")


def _browse(request: BrowseRequest, store: Optional[str]) -> Optional[str]:
    from tel.ui.app import TableBrowserApp

    async def run(local_store: LocalStore) -> Optional[str]:
        logger.info("browse_started", item=request.item, sql=request.sql_name, db=request.db_name, uid=request.token)
        controller = await open_browser(request, local_store)
        try:
            await TableBrowserApp(controller).run_async()
        finally:
            await controller.close()
        logger.info("browse_finished", token=controller.token)
        return controller.token

    return _run_with_store(store, run)


@app.command("add-connection")
def add_connection(
    name: str = typer.Argument(..., help="Unique connection name"),
    driver: str = typer.Option(..., "--driver", help="Driver kind: sqlite, postgres, pgx or duckdb"),
    connect: str = typer.Option(..., "--connect", help="Connection string or URL"),
    comment: Optional[str] = typer.Option(None, "--comment", help="Free-form note"),
    store: Optional[str] = store_option,
) -> None:
    """Register a backend database connection."""
    if driver.lower() not in create_default_registry().kinds:
        logger.error("unknown_driver", driver=driver)
        typer.echo(f"Error: unsupported driver kind {driver!r}", err=True)
        raise typer.Exit(1)

    connection = _run_with_store(
        store,
        lambda local_store: CatalogStore(local_store).add_connection(name, driver.lower(), connect, comment),
    )
    typer.echo(f"Added connection {connection.name} (id {connection.id})")


@app.command("add-query")
def add_query(
    name: str = typer.Argument(..., help="Unique query name"),
    sql_text: str = typer.Option(..., "--sql-text", help="SQL text; may contain :placeholders"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help='Display config JSON, e.g. {"widths": {"NAME": 30}, "aliases": {"ID": "user_id"}}',
    ),
    height: Optional[int] = typer.Option(None, "--height", min=0, help="Default table height"),
    item: Optional[str] = typer.Option(None, "--item", help="Item owning the query"),
    db: Optional[str] = typer.Option(None, "--db", help="Connection of the item (required with --item)"),
    store: Optional[str] = store_option,
) -> None:
    """Register a named query with optional display config."""
    if item and not db:
        typer.echo("Error: --db is required with --item", err=True)
        raise typer.Exit(1)

    async def run(local_store: LocalStore):
        catalog = CatalogStore(local_store)
        item_id = None
        if item:
            connection = await catalog.get_connection(db)
            item_id = (await catalog.ensure_item(item, connection.id)).id
        return await catalog.add_query(name, sql_text, config_json=config, height=height, item_id=item_id)

    query = _run_with_store(store, run)
    typer.echo(f"Added query {query.name} (id {query.id})")


@app.command("find-digest")
def find_digest(
    digest: str = typer.Argument(..., help="Row digest saved by a session"),
    store: Optional[str] = store_option,
) -> None:
    """Show which query a saved row digest belongs to."""

    async def run(local_store: LocalStore):
        query_id = await SessionStore(local_store).lookup_query_id(digest)
        return await CatalogStore(local_store).get_query_by_id(query_id)

    query = _run_with_store(store, run)
    typer.echo(f"{query.name} (id {query.id})")


@app.command()
def version() -> None:
    """Show version information."""
    from tel import __version__

    typer.echo(f"tel {__version__}")
