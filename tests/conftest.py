"""Shared fixtures: an in-memory local store and a small SQLite backend."""

import sqlite3
from contextlib import closing
from pathlib import Path

import pytest

from tel.models.catalog import Connection, QueryDefinition
from tel.services.catalog_store import CatalogStore
from tel.services.factory import create_test_local_store
from tel.services.local_store import LocalStore
from tel.services.session_store import SessionStore

USERS_SQL = "SELECT id, name, status FROM users ORDER BY id"


def create_users_db(path: Path) -> Path:
    """Create a SQLite database with a small users table."""
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(
            """
            CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, status TEXT, avatar BLOB, score REAL);
            INSERT INTO users VALUES (1, 'alice', 'active', X'6131', 1.5);
            INSERT INTO users VALUES (2, 'bob', 'inactive', NULL, NULL);
            INSERT INTO users VALUES (3, 'carol', 'active', NULL, 3.0);
            INSERT INTO users VALUES (5, 'eve', 'active', NULL, 2.0);
            """
        )
        conn.commit()
    return path


@pytest.fixture
def users_db(tmp_path: Path) -> Path:
    return create_users_db(tmp_path / "users.db")


@pytest.fixture
async def store() -> LocalStore:
    """In-memory local store with the schema created."""
    store = create_test_local_store()
    await store.initialize_schema()
    return store


@pytest.fixture
def catalog(store: LocalStore) -> CatalogStore:
    return CatalogStore(store)


@pytest.fixture
def sessions(store: LocalStore) -> SessionStore:
    return SessionStore(store)


@pytest.fixture
async def users_connection(catalog: CatalogStore, users_db: Path) -> Connection:
    return await catalog.add_connection("shop", "sqlite", str(users_db), comment="test shop")


@pytest.fixture
async def users_query(catalog: CatalogStore, users_connection: Connection) -> QueryDefinition:
    return await catalog.add_query(
        "users",
        USERS_SQL,
        config_json='{"widths": {"user_name": 30}, "aliases": {"id": "user_id", "NAME": "user_name"}}',
    )
