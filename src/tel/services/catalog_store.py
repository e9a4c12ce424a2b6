"""Catalog of connections, items and named queries in the local store.

Connections and queries are provisioned administratively and only read while
browsing. Items and their column config rows are created the first time a
user confirms a row.
"""

from collections.abc import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tel.errors import NotFoundError, PersistenceError
from tel.models.catalog import Connection, DisplayConfig, Item, QueryDefinition
from tel.models.result import Column
from tel.models.tables import ColumnConfigRecord, ConnectionRecord, ItemRecord, QueryRecord
from tel.services.local_store import LocalStore


class CatalogStore:
    """Looks up catalog entries by name or id and saves column config.

    Lookups raise NotFoundError instead of returning None: every caller needs
    the row to continue.
    """

    def __init__(
        self,
        store: LocalStore,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._store = store
        self._logger = logger or structlog.get_logger(__name__)

    async def get_connection(self, name: str) -> Connection:
        """Retrieve a connection by its unique name.

        Raises:
            NotFoundError: If no connection has that name.
        """
        record = await self._scalar(select(ConnectionRecord).where(ConnectionRecord.name == name))
        if record is None:
            raise NotFoundError("connection", name)
        return self._record_to_connection(record)

    async def get_connection_by_id(self, connection_id: int) -> Connection:
        record = await self._get(ConnectionRecord, connection_id)
        if record is None:
            raise NotFoundError("connection", connection_id)
        return self._record_to_connection(record)

    async def get_item(self, name: str) -> Item:
        record = await self._scalar(select(ItemRecord).where(ItemRecord.name == name))
        if record is None:
            raise NotFoundError("item", name)
        return self._record_to_item(record)

    async def ensure_item(self, name: str, connection_id: int) -> Item:
        """Return the item with this name, inserting it first if it is missing.

        An existing item keeps its original connection.
        """
        try:
            async with self._store.session() as session:
                result = await session.execute(select(ItemRecord).where(ItemRecord.name == name))
                record = result.scalar_one_or_none()
                if record is None:
                    record = ItemRecord(name=name, connection_id=connection_id)
                    session.add(record)
                    await session.commit()
                    self._logger.info("item_created", item=name, connection_id=connection_id)
                return self._record_to_item(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to create item {name!r}: {e}") from e

    async def get_query(self, name: str) -> QueryDefinition:
        """Retrieve a query definition with its parsed display config.

        Raises:
            NotFoundError: If no query has that name.
            ConfigParseError: If the stored display config is malformed.
        """
        record = await self._scalar(select(QueryRecord).where(QueryRecord.name == name))
        if record is None:
            raise NotFoundError("query", name)
        return self._record_to_query(record)

    async def get_query_by_id(self, query_id: int) -> QueryDefinition:
        record = await self._get(QueryRecord, query_id)
        if record is None:
            raise NotFoundError("query", query_id)
        return self._record_to_query(record)

    async def get_display_config(self, name: str) -> DisplayConfig:
        """Re-read the display config of a query from the store."""
        query = await self.get_query(name)
        return query.display

    async def save_column_config(
        self,
        item_name: str,
        connection_id: int,
        token: str,
        row: Sequence[str],
        columns: Sequence[Column],
        aliases: dict[str, str],
    ) -> int:
        """Save the aliased cells of a row as column config for an item.

        The item is created first if needed. Only columns whose upper-cased
        name has an alias are saved, keyed by the alias.

        Returns:
            Number of config entries written.
        """
        item = await self.ensure_item(item_name, connection_id)
        values = [
            {"item_id": item.id, "token": token, "variable": aliases[column.name.upper()], "value": cell}
            for column, cell in zip(columns, row)
            if column.name.upper() in aliases
        ]
        if not values:
            return 0

        statement = insert(ColumnConfigRecord).values(values)
        statement = statement.on_conflict_do_update(
            index_elements=["item_id", "token", "variable"],
            set_={"value": statement.excluded["value"]},
        )
        try:
            async with self._store.session() as session:
                await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to save column config for item {item_name!r}: {e}") from e

        self._logger.debug(
            "column_config_saved",
            item=item_name,
            token=token,
            variables=[value["variable"] for value in values],
        )
        return len(values)

    async def get_column_config(self, item_name: str, token: str) -> dict[str, str]:
        """Return the saved variable values of an item for a session token."""
        item = await self.get_item(item_name)
        statement = select(ColumnConfigRecord).where(
            ColumnConfigRecord.item_id == item.id,
            ColumnConfigRecord.token == token,
        )
        try:
            async with self._store.session() as session:
                result = await session.execute(statement)
                return {record.variable: record.value for record in result.scalars()}
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to read column config: {e}") from e

    async def add_connection(
        self,
        name: str,
        driver: str,
        connect: str,
        comment: str | None = None,
    ) -> Connection:
        """Register a backend connection.

        Raises:
            PersistenceError: If the name is already taken.
        """
        record = ConnectionRecord(name=name, driver=driver, connect=connect, comment=comment)
        await self._insert(record, f"connection {name!r}")
        self._logger.info("connection_added", connection=name, driver=driver)
        return self._record_to_connection(record)

    async def add_query(
        self,
        name: str,
        query_text: str,
        config_json: str | None = None,
        height: int | None = None,
        item_id: int | None = None,
    ) -> QueryDefinition:
        """Register a named query.

        The display config is parsed before insert so a malformed config never
        reaches the store.

        Raises:
            ConfigParseError: If ``config_json`` is malformed.
            PersistenceError: If the name is already taken.
        """
        DisplayConfig.parse(config_json, height)
        record = QueryRecord(name=name, query_text=query_text, config_json=config_json, item_id=item_id)
        if height is not None:
            record.height = height
        await self._insert(record, f"query {name!r}")
        self._logger.info("query_added", query=name, item_id=item_id)
        return self._record_to_query(record)

    async def _insert(self, record, label: str) -> None:
        try:
            async with self._store.session() as session:
                session.add(record)
                await session.commit()
        except IntegrityError as e:
            raise PersistenceError(f"{label} already exists or references a missing row") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to save {label}: {e}") from e

    async def _scalar(self, statement):
        try:
            async with self._store.session() as session:
                result = await session.execute(statement)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"catalog lookup failed: {e}") from e

    async def _get(self, model, key):
        try:
            async with self._store.session() as session:
                return await session.get(model, key)
        except SQLAlchemyError as e:
            raise PersistenceError(f"catalog lookup failed: {e}") from e

    def _record_to_connection(self, record: ConnectionRecord) -> Connection:
        return Connection.model_validate(record.model_dump())

    def _record_to_item(self, record: ItemRecord) -> Item:
        return Item.model_validate(record.model_dump())

    def _record_to_query(self, record: QueryRecord) -> QueryDefinition:
        return QueryDefinition(
            id=record.id,
            name=record.name,
            item_id=record.item_id,
            sql=record.query_text,
            display=DisplayConfig.parse(record.config_json, record.height),
        )
