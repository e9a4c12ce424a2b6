"""Unit tests for the CatalogStore service."""

from pathlib import Path

import pytest
from sqlalchemy import func, select

from tel.errors import ConfigParseError, NotFoundError, PersistenceError
from tel.models.catalog import Connection, QueryDefinition
from tel.models.result import Column
from tel.models.tables import ColumnConfigRecord, ItemRecord, QueryRecord
from tel.services.catalog_store import CatalogStore
from tel.services.local_store import LocalStore


async def _count(store: LocalStore, model) -> int:
    async with store.session() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestCatalogStoreConnections:
    """Tests for connection registration and lookup."""

    async def test_get_connection_by_name(self, catalog: CatalogStore, users_connection: Connection) -> None:
        connection = await catalog.get_connection("shop")

        assert connection.id == users_connection.id
        assert connection.driver == "sqlite"
        assert connection.connect == users_connection.connect
        assert connection.comment == "test shop"

    async def test_get_connection_by_id(self, catalog: CatalogStore, users_connection: Connection) -> None:
        connection = await catalog.get_connection_by_id(users_connection.id)

        assert connection.name == "shop"

    async def test_unknown_connection_raises_not_found(self, catalog: CatalogStore) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await catalog.get_connection("missing")

        assert exc_info.value.kind == "connection"
        assert exc_info.value.key == "missing"

    async def test_duplicate_connection_name_is_rejected(
        self, catalog: CatalogStore, users_connection: Connection, tmp_path: Path
    ) -> None:
        with pytest.raises(PersistenceError):
            await catalog.add_connection("shop", "sqlite", str(tmp_path / "other.db"))


class TestCatalogStoreQueries:
    """Tests for query definitions and their display config."""

    async def test_get_query_parses_display_config(
        self, catalog: CatalogStore, users_query: QueryDefinition
    ) -> None:
        query = await catalog.get_query("users")

        assert query.id == users_query.id
        assert query.sql == users_query.sql
        assert query.display.widths == {"user_name": 30}
        assert query.display.aliases == {"ID": "user_id", "NAME": "user_name"}
        assert query.display.height == 10

    async def test_zero_config_height_falls_back_to_stored_height(
        self, catalog: CatalogStore, users_connection: Connection
    ) -> None:
        await catalog.add_query(
            "short",
            "SELECT id, name FROM users",
            config_json='{"widths":{"NAME":30},"aliases":{}}',
            height=4,
        )

        config = await catalog.get_display_config("short")

        assert config.widths == {"NAME": 30}
        assert config.aliases == {}
        assert config.height == 4

    async def test_query_without_config_has_empty_maps(self, catalog: CatalogStore) -> None:
        await catalog.add_query("plain", "SELECT 1")

        config = await catalog.get_display_config("plain")

        assert config.widths == {}
        assert config.aliases == {}
        assert config.height == 10

    async def test_get_query_by_id(self, catalog: CatalogStore, users_query: QueryDefinition) -> None:
        query = await catalog.get_query_by_id(users_query.id)

        assert query.name == "users"

    async def test_unknown_query_raises_not_found(self, catalog: CatalogStore) -> None:
        with pytest.raises(NotFoundError):
            await catalog.get_query("missing")
        with pytest.raises(NotFoundError):
            await catalog.get_query_by_id(404)

    async def test_malformed_stored_config_raises(self, catalog: CatalogStore, store: LocalStore) -> None:
        async with store.session() as session:
            session.add(QueryRecord(name="broken", query_text="SELECT 1", config_json="{widths"))
            await session.commit()

        with pytest.raises(ConfigParseError):
            await catalog.get_query("broken")

    async def test_add_query_rejects_malformed_config(self, catalog: CatalogStore) -> None:
        with pytest.raises(ConfigParseError):
            await catalog.add_query("broken", "SELECT 1", config_json='{"widths": []}')

        with pytest.raises(NotFoundError):
            await catalog.get_query("broken")

    async def test_duplicate_query_name_is_rejected(
        self, catalog: CatalogStore, users_query: QueryDefinition
    ) -> None:
        with pytest.raises(PersistenceError):
            await catalog.add_query("users", "SELECT 2")


class TestCatalogStoreItems:
    """Tests for lazy item creation."""

    async def test_ensure_item_creates_once(
        self, catalog: CatalogStore, store: LocalStore, users_connection: Connection
    ) -> None:
        first = await catalog.ensure_item("customer", users_connection.id)
        second = await catalog.ensure_item("customer", users_connection.id)

        assert first.id == second.id
        assert first.connection_id == users_connection.id
        assert await _count(store, ItemRecord) == 1

    async def test_ensure_item_requires_existing_connection(self, catalog: CatalogStore) -> None:
        with pytest.raises(PersistenceError):
            await catalog.ensure_item("orphan", 999)

    async def test_get_item_not_found(self, catalog: CatalogStore) -> None:
        with pytest.raises(NotFoundError):
            await catalog.get_item("customer")


class TestCatalogStoreColumnConfig:
    """Tests for saving selected row values as column config."""

    COLUMNS = [Column(name="id"), Column(name="name"), Column(name="status")]
    ALIASES = {"ID": "user_id", "NAME": "user_name"}

    async def test_saves_only_aliased_columns(
        self, catalog: CatalogStore, users_connection: Connection
    ) -> None:
        saved = await catalog.save_column_config(
            "customer", users_connection.id, "token-1", ["1", "alice", "active"], self.COLUMNS, self.ALIASES
        )

        assert saved == 2
        assert await catalog.get_column_config("customer", "token-1") == {"user_id": "1", "user_name": "alice"}

    async def test_alias_lookup_ignores_column_case(
        self, catalog: CatalogStore, users_connection: Connection
    ) -> None:
        saved = await catalog.save_column_config(
            "customer", users_connection.id, "token-1", ["active"], [Column(name="status")], {"STATUS": "state"}
        )

        assert saved == 1
        assert await catalog.get_column_config("customer", "token-1") == {"state": "active"}

    async def test_saving_again_replaces_values(
        self, catalog: CatalogStore, store: LocalStore, users_connection: Connection
    ) -> None:
        await catalog.save_column_config(
            "customer", users_connection.id, "token-1", ["1", "alice", "active"], self.COLUMNS, self.ALIASES
        )
        await catalog.save_column_config(
            "customer", users_connection.id, "token-1", ["2", "bob", "inactive"], self.COLUMNS, self.ALIASES
        )

        assert await catalog.get_column_config("customer", "token-1") == {"user_id": "2", "user_name": "bob"}
        assert await _count(store, ColumnConfigRecord) == 2

    async def test_tokens_keep_separate_values(
        self, catalog: CatalogStore, users_connection: Connection
    ) -> None:
        await catalog.save_column_config(
            "customer", users_connection.id, "token-1", ["1", "alice", "active"], self.COLUMNS, self.ALIASES
        )
        await catalog.save_column_config(
            "customer", users_connection.id, "token-2", ["3", "carol", "active"], self.COLUMNS, self.ALIASES
        )

        assert (await catalog.get_column_config("customer", "token-1"))["user_name"] == "alice"
        assert (await catalog.get_column_config("customer", "token-2"))["user_name"] == "carol"

    async def test_no_aliases_writes_nothing_but_creates_item(
        self, catalog: CatalogStore, users_connection: Connection
    ) -> None:
        saved = await catalog.save_column_config(
            "customer", users_connection.id, "token-1", ["1", "alice", "active"], self.COLUMNS, {}
        )

        assert saved == 0
        assert (await catalog.get_item("customer")).name == "customer"
        assert await catalog.get_column_config("customer", "token-1") == {}
