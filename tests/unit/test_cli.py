"""Tests for the tel command line."""

import asyncio
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tel import __version__
from tel.cli import app
from tel.services.catalog_store import CatalogStore
from tel.services.factory import create_local_store
from tel.services.session_store import SessionStore

runner = CliRunner()

USERS_SQL = "SELECT id, name, status FROM users ORDER BY id"
DIGEST = "ab" * 32


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "tel.db"


def invoke(store_path: Path, *args: str):
    return runner.invoke(app, [*args, "--store", str(store_path)])


def seed_session(store_path: Path) -> None:
    async def run() -> None:
        store = create_local_store(store_path)
        try:
            await store.initialize_schema()
            query = await CatalogStore(store).get_query("users")
            await SessionStore(store).save_instance(query.id, DIGEST, "tok")
        finally:
            await store.dispose()

    asyncio.run(run())


class TestAddConnection:
    """Tests for the add-connection command."""

    def test_adds_connection(self, store_path: Path, users_db: Path) -> None:
        result = invoke(store_path, "add-connection", "shop", "--driver", "sqlite", "--connect", str(users_db))

        assert result.exit_code == 0
        assert "Added connection shop (id 1)" in result.output

    def test_driver_is_case_insensitive(self, store_path: Path) -> None:
        result = invoke(store_path, "add-connection", "pg", "--driver", "Postgres", "--connect", "dbname=shop")

        assert result.exit_code == 0

    def test_duplicate_name_fails(self, store_path: Path, users_db: Path) -> None:
        args = ("add-connection", "shop", "--driver", "sqlite", "--connect", str(users_db))
        invoke(store_path, *args)

        result = invoke(store_path, *args)

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_unknown_driver_fails(self, store_path: Path) -> None:
        result = invoke(store_path, "add-connection", "legacy", "--driver", "oracle", "--connect", "x")

        assert result.exit_code == 1
        assert "unsupported driver kind" in result.output

    def test_store_from_environment(self, store_path: Path, users_db: Path) -> None:
        result = runner.invoke(
            app,
            ["add-connection", "shop", "--driver", "sqlite", "--connect", str(users_db)],
            env={"TEL_STORE": str(store_path)},
        )

        assert result.exit_code == 0
        assert store_path.exists()


class TestAddQuery:
    """Tests for the add-query command."""

    def test_adds_query(self, store_path: Path) -> None:
        result = invoke(
            store_path, "add-query", "users", "--sql-text", USERS_SQL, "--config", '{"widths": {"NAME": 30}}'
        )

        assert result.exit_code == 0
        assert "Added query users (id 1)" in result.output

    def test_malformed_config_fails(self, store_path: Path) -> None:
        result = invoke(store_path, "add-query", "users", "--sql-text", USERS_SQL, "--config", "{nope")

        assert result.exit_code == 1
        assert "malformed display config" in result.output

    def test_item_requires_db(self, store_path: Path) -> None:
        result = invoke(store_path, "add-query", "users", "--sql-text", USERS_SQL, "--item", "customer")

        assert result.exit_code == 1
        assert "--db is required" in result.output

    def test_item_with_unknown_db_fails(self, store_path: Path) -> None:
        result = invoke(
            store_path, "add-query", "users", "--sql-text", USERS_SQL, "--item", "customer", "--db", "nosuch"
        )

        assert result.exit_code == 1
        assert "connection not found: nosuch" in result.output

    def test_item_is_created(self, store_path: Path, users_db: Path) -> None:
        invoke(store_path, "add-connection", "shop", "--driver", "sqlite", "--connect", str(users_db))

        result = invoke(
            store_path, "add-query", "users", "--sql-text", USERS_SQL, "--item", "customer", "--db", "shop"
        )

        assert result.exit_code == 0


class TestFindDigest:
    """Tests for the find-digest command."""

    def test_finds_query_for_digest(self, store_path: Path) -> None:
        invoke(store_path, "add-query", "users", "--sql-text", USERS_SQL)
        seed_session(store_path)

        result = invoke(store_path, "find-digest", DIGEST.upper())

        assert result.exit_code == 0
        assert "users (id 1)" in result.output

    def test_unknown_digest_fails(self, store_path: Path) -> None:
        result = invoke(store_path, "find-digest", DIGEST)

        assert result.exit_code == 1
        assert "session digest not found" in result.output


class TestBrowse:
    """Tests for browse argument handling; the interactive loop is tested separately."""

    @pytest.mark.parametrize(
        ("args", "missing"),
        [
            (["--sql", "users", "--db", "shop"], "--item"),
            (["--item", "customer", "--db", "shop"], "--sql"),
            (["--item", "customer", "--sql", "users"], "--db"),
        ],
    )
    def test_missing_selector_fails(self, store_path: Path, args: list[str], missing: str) -> None:
        result = invoke(store_path, "browse", *args)

        assert result.exit_code == 1
        assert f"{missing} is required" in result.output

    def test_unknown_connection_fails_and_logs(self, store_path: Path, tmp_path: Path) -> None:
        log_path = tmp_path / "tel.log"

        result = invoke(
            store_path,
            "browse",
            "--item",
            "customer",
            "--sql",
            "users",
            "--db",
            "nosuch",
            "--log-file",
            str(log_path),
        )

        assert result.exit_code == 1
        assert "connection not found: nosuch" in result.output
        assert "command_failed" in log_path.read_text()


def test_version() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"tel {__version__}" in result.output
