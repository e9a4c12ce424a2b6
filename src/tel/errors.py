"""Error taxonomy shared by the store, executor and controller.

Initialization-time errors are fatal and handled by the CLI. Errors raised while
filtering or saving from the interactive loop are caught by the controller and
shown to the user without ending the session.
"""


class TelError(Exception):
    """Base class for all errors raised by tel."""


class NotFoundError(TelError):
    """A connection, item, query or session lookup matched no row."""

    def __init__(self, kind: str, key: object) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class BackendConnectionError(TelError):
    """The backend database could not be reached or its driver is unknown."""


class QueryError(TelError):
    """Executing a query or reading its result failed."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        self.sql = sql
        super().__init__(message)


class ConfigParseError(TelError):
    """Stored display configuration or placeholder arguments are malformed."""


class PersistenceError(TelError):
    """Reading from or writing to the local store failed."""


class EmptyResultError(TelError):
    """The initial query returned no rows or no columns."""
