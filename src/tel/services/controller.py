"""Interaction controller for the table browser.

Holds the browsing state (focus, displayed rows, cursor, filter text, session
token) and turns key-level intents into filter runs and session saves. The
terminal UI only forwards intents and renders this state, which keeps the
state machine testable without a terminal.
"""

import structlog

from tel.errors import EmptyResultError, TelError
from tel.models.catalog import DisplayConfig, QueryDefinition
from tel.models.enums import Focus, ViewMode
from tel.models.result import Column, ResultSet
from tel.services.catalog_store import CatalogStore
from tel.services.executor import QueryExecutor
from tel.services.filter import compose_filter
from tel.services.identity import find_row_by_digest, row_digest
from tel.services.presentation import present, resolve_table_height, to_vertical_view
from tel.services.session_store import SessionStore


class InteractionController:
    """State machine over the table and the filter input.

    Focus is either TABLE or FILTER. ``commit`` runs the filter when the input
    is focused and saves the selected row when the table is focused. Errors
    raised while committing are kept in ``message`` and never end the session.
    """

    def __init__(
        self,
        query: QueryDefinition,
        sql: str,
        item_name: str,
        connection_id: int,
        executor: QueryExecutor,
        catalog: CatalogStore,
        sessions: SessionStore,
        view_mode: ViewMode = ViewMode.TABLE,
        token: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._query = query
        self._sql = sql
        self._item_name = item_name
        self._connection_id = connection_id
        self._executor = executor
        self._catalog = catalog
        self._sessions = sessions
        self._view_mode = view_mode
        self._logger = logger or structlog.get_logger(__name__)

        self.token = token or None
        self.focus = Focus.TABLE
        self.filter_text = ""
        self.applied_filter = ""
        self.cursor = 0
        self.message = ""
        self.message_is_error = False
        self.finished = False
        self.revision = 0
        self._display_config = query.display
        self._result = ResultSet()
        self._view = ResultSet()

    @property
    def columns(self) -> list[Column]:
        return self._view.columns

    @property
    def rows(self) -> list[list[str]]:
        return self._view.rows

    @property
    def table_height(self) -> int:
        return resolve_table_height(self._display_config.height, len(self._view.rows))

    def selected_record(self) -> list[str] | None:
        """The underlying result row the cursor stands for.

        In column view the table shows the first row pivoted, so that row is
        the record whatever the cursor position.
        """
        if not self._result.rows:
            return None
        if self._view_mode == ViewMode.COLUMN:
            return self._result.rows[0]
        return self._result.rows[min(self.cursor, len(self._result.rows) - 1)]

    async def start(self, initial_filter: str = "") -> None:
        """Run the base query, then the initial filter if one is given.

        A failing or empty initial filter leaves the unfiltered rows in place.

        Raises:
            QueryError: If the base query fails.
            EmptyResultError: If the base query returns nothing.
        """
        base = await self.run_query("")
        if base.is_empty:
            raise EmptyResultError(f"query {self._query.name!r} returned no data")
        self._show(base, "")
        self.filter_text = initial_filter

        if not initial_filter.strip():
            return
        try:
            filtered = await self.run_query(initial_filter)
        except TelError as e:
            self._logger.warning("initial_filter_failed", filter=initial_filter, error=str(e))
            return
        if filtered.is_empty:
            self._logger.warning("initial_filter_empty", filter=initial_filter)
            return
        self._show(filtered, initial_filter)
        self._logger.info("initial_filter_applied", filter=initial_filter, row_count=len(filtered.rows))

    async def run_query(self, filter_text: str) -> ResultSet:
        """Execute the query with a filter and apply the current display config."""
        sql = compose_filter(self._sql, filter_text)
        result = await self._executor.execute(sql)
        self._display_config = await self._load_display_config()
        return present(result, self._display_config.widths, self._display_config.aliases)

    def toggle_focus(self) -> None:
        self.focus = Focus.FILTER if self.focus == Focus.TABLE else Focus.TABLE

    def quit(self) -> None:
        self.finished = True

    async def close(self) -> None:
        await self._executor.close()

    def move_cursor(self, row: int) -> None:
        if not self._view.rows:
            self.cursor = 0
            return
        self.cursor = max(0, min(row, len(self._view.rows) - 1))

    def select_row_by_digest(self, digest: str) -> bool:
        """Move the cursor to the row with this digest; False if absent."""
        index = find_row_by_digest(self._result.rows, digest)
        if index is None:
            self._logger.info("row_digest_not_found", digest=digest)
            return False
        if self._view_mode == ViewMode.TABLE:
            self.cursor = index
        return True

    async def commit(self) -> None:
        """Handle the commit key for whichever surface has focus."""
        self.message = ""
        self.message_is_error = False
        if self.finished:
            return
        try:
            if self.focus == Focus.FILTER:
                await self._commit_filter()
            else:
                await self._commit_row()
        except TelError as e:
            self._logger.warning("commit_failed", focus=self.focus.value, error=str(e))
            self.message = str(e)
            self.message_is_error = True

    async def _commit_filter(self) -> None:
        filter_text = self.filter_text
        result = await self.run_query(filter_text)
        self._show(result, filter_text)
        self._logger.info("filter_applied", filter=filter_text, row_count=len(result.rows))

        record = self.selected_record()
        if record is None:
            self.message = "no rows match the filter"
            return
        self.token = await self._sessions.save_instance(
            self._query.id, row_digest(record), self.token, filter_text
        )

    async def _commit_row(self) -> None:
        record = self.selected_record()
        if record is None:
            self.message = "no row selected"
            return
        digest = row_digest(record)
        self.token = await self._sessions.save_instance(
            self._query.id, digest, self.token, self.applied_filter
        )
        saved = await self._catalog.save_column_config(
            self._item_name,
            self._connection_id,
            self.token,
            record,
            self._result.columns,
            self._display_config.aliases,
        )
        self._logger.info("row_saved", token=self.token, digest=digest, variables_saved=saved)
        self.message = f"saved session {self.token}"

    async def _load_display_config(self) -> DisplayConfig:
        try:
            return await self._catalog.get_display_config(self._query.name)
        except TelError as e:
            self._logger.warning("display_config_reload_failed", query=self._query.name, error=str(e))
            return self._query.display

    def _show(self, result: ResultSet, filter_text: str) -> None:
        self._result = result
        self._view = to_vertical_view(result) if self._view_mode == ViewMode.COLUMN else result
        self.applied_filter = filter_text
        self.cursor = 0
        self.revision += 1
