"""Display overlay for query results: widths, aliases, pivot view, height."""

from tel.models.catalog import DEFAULT_QUERY_HEIGHT
from tel.models.result import DEFAULT_COLUMN_WIDTH, Column, ResultSet

VERTICAL_NAME_COLUMN = Column(name="COLUMN", width=30)
VERTICAL_VALUE_COLUMN = Column(name="VAL", width=50)


def canonical_name(column_name: str, aliases: dict[str, str]) -> str:
    """Alias of the upper-cased column name, else the upper-cased name."""
    upper = column_name.upper()
    return aliases.get(upper, upper)


def apply_display_config(
    columns: list[Column],
    widths: dict[str, int],
    aliases: dict[str, str],
) -> list[Column]:
    """Title each column by its canonical name and size it from ``widths``.

    Alias keys are matched against upper-cased column names, so an alias or
    width configured under ``STATUS`` applies to a column named ``status``.
    Columns without a configured width get the default width.
    """
    upper_aliases = {key.upper(): alias for key, alias in aliases.items()}
    adjusted = []
    for column in columns:
        title = canonical_name(column.name, upper_aliases)
        width = widths.get(title, DEFAULT_COLUMN_WIDTH)
        adjusted.append(column.model_copy(update={"title": title, "width": width}))
    return adjusted


def present(result: ResultSet, widths: dict[str, int], aliases: dict[str, str]) -> ResultSet:
    return result.model_copy(update={"columns": apply_display_config(result.columns, widths, aliases)})


def to_vertical_view(result: ResultSet) -> ResultSet:
    """Pivot the first row into one (column title, value) row per column.

    Only the first row is shown, whichever row is selected.
    """
    if not result.rows:
        return result
    first = result.rows[0]
    rows = [
        [column.title, first[index] if index < len(first) else ""]
        for index, column in enumerate(result.columns)
    ]
    return ResultSet(columns=[VERTICAL_NAME_COLUMN, VERTICAL_VALUE_COLUMN], rows=rows)


def resolve_table_height(configured: int, row_count: int) -> int:
    """Visible table height including the header line."""
    height = configured or DEFAULT_QUERY_HEIGHT
    if row_count < DEFAULT_QUERY_HEIGHT:
        height = row_count
    return height + 1
