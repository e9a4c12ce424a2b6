"""Textual front end for the table browser.

Renders the controller's rows and filter text and forwards key intents to it.
All browsing decisions live in InteractionController.
"""

import structlog
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Input

from tel.models.enums import Focus
from tel.services.controller import InteractionController


class TableBrowserApp(App[str | None]):
    """Query result table with a filter input underneath.

    Returns the session token in use when the app exits.
    """

    DEFAULT_CSS = """
    #rows-table {
        border: solid rgb(88, 88, 88);
    }

    #filter-input {
        height: 3;
    }
    """

    BINDINGS = [
        Binding("tab", "toggle_focus", "Table/Filter", priority=True),
        Binding("escape", "toggle_focus", "Table/Filter", show=False, priority=True),
        Binding("enter", "commit", "Commit", priority=True),
        Binding("ctrl+c", "quit_browser", "Quit", priority=True),
    ]

    def __init__(
        self,
        controller: InteractionController,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__()
        self._controller = controller
        self._browser_logger = logger or structlog.get_logger(__name__)

    def compose(self) -> ComposeResult:
        yield DataTable(id="rows-table", cursor_type="row", zebra_stripes=False)
        yield Input(value=self._controller.filter_text, placeholder="filter, e.g. status = 'active'", id="filter-input")

    def on_mount(self) -> None:
        self._render_table()
        self._focus_surface()

    def action_toggle_focus(self) -> None:
        self._controller.toggle_focus()
        self._focus_surface()

    async def action_commit(self) -> None:
        table = self._table()
        self._controller.move_cursor(table.cursor_row)
        self._controller.filter_text = self._input().value

        revision = self._controller.revision
        await self._controller.commit()
        if self._controller.revision != revision:
            self._render_table()

        if self._controller.message:
            self.notify(
                self._controller.message,
                severity="error" if self._controller.message_is_error else "information",
            )

    def action_quit_browser(self) -> None:
        self._controller.quit()
        self._browser_logger.info("browser_quit", token=self._controller.token)
        self.exit(self._controller.token)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        self._controller.move_cursor(event.cursor_row)

    def _render_table(self) -> None:
        table = self._table()
        table.clear(columns=True)
        for column in self._controller.columns:
            table.add_column(column.title, width=column.width)
        table.add_rows(self._controller.rows)
        table.styles.height = self._controller.table_height + 2
        table.move_cursor(row=self._controller.cursor)

    def _focus_surface(self) -> None:
        if self._controller.focus == Focus.FILTER:
            self._input().focus()
        else:
            self._table().focus()

    def _table(self) -> DataTable:
        return self.query_one("#rows-table", DataTable)

    def _input(self) -> Input:
        return self.query_one("#filter-input", Input)
