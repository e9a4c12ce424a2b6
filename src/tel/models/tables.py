"""SQLModel table definitions for the local store.

Table classes are kept apart from the frozen pydantic domain models in
catalog.py and session.py: SQLModel records are mutable ORM objects, while the
domain models handed to the rest of the application are immutable values.

Composite primary keys on ``column_config`` and ``session_instance`` make every
write to those tables an upsert on the key.
"""

from sqlmodel import Field, SQLModel

from tel.models.catalog import DEFAULT_QUERY_HEIGHT
from tel.models.session import generate_token


class ConnectionRecord(SQLModel, table=True):
    """A named backend database and how to reach it."""

    __tablename__ = "connections"

    id: int | None = Field(default=None, primary_key=True)
    driver: str
    name: str = Field(index=True, unique=True)
    connect: str
    comment: str | None = None


class ItemRecord(SQLModel, table=True):
    """Logical grouping of saved column values, owned by one connection."""

    __tablename__ = "items"

    id: int | None = Field(default=None, primary_key=True)
    connection_id: int = Field(index=True, foreign_key="connections.id")
    name: str = Field(index=True, unique=True)


class QueryRecord(SQLModel, table=True):
    """A named SQL query with its serialized display configuration."""

    __tablename__ = "queries"

    id: int | None = Field(default=None, primary_key=True)
    item_id: int | None = Field(default=None, foreign_key="items.id")
    name: str = Field(index=True, unique=True)
    query_text: str
    config_json: str | None = None
    height: int | None = Field(
        default=DEFAULT_QUERY_HEIGHT,
        sa_column_kwargs={"server_default": str(DEFAULT_QUERY_HEIGHT)},
    )


class ColumnConfigRecord(SQLModel, table=True):
    """A saved cell value for one aliased column, per item and session token."""

    __tablename__ = "column_config"

    item_id: int = Field(primary_key=True, foreign_key="items.id")
    token: str = Field(primary_key=True)
    variable: str = Field(primary_key=True)
    value: str = ""


class SessionInstanceRecord(SQLModel, table=True):
    """Last selected row digest and filter text for a token and query."""

    __tablename__ = "session_instance"

    token: str = Field(default_factory=generate_token, primary_key=True)
    query_id: int = Field(primary_key=True, foreign_key="queries.id")
    row_digest: str = Field(index=True)
    filter_text: str = ""
