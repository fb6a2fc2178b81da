from __future__ import annotations

from pathlib import Path
import sys

import psycopg2
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipebox import postgres_storage
from recipebox.config import Config
from recipebox.errors import StorageError
from recipebox.postgres_storage import PostgresRecipeStorage


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def execute(self, sql, params=None):
        if self._connection.error is not None:
            raise self._connection.error
        self._connection.executed.append((" ".join(sql.split()), params))

    def fetchall(self):
        return list(self._connection.rows)

    def fetchone(self):
        return self._connection.rows[0]


class FakeConnection:
    """Records statements and transaction outcomes like a psycopg2 connection."""

    def __init__(self) -> None:
        self.executed: list = []
        self.rows: list = []
        self.error: Exception | None = None
        self.commits = 0
        self.rollbacks = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commits += 1
        else:
            self.rollbacks += 1
        return False

    def cursor(self):
        return FakeCursor(self)


class FakePool:
    def __init__(self, connection: FakeConnection | None = None) -> None:
        self.connection = connection or FakeConnection()
        self.borrowed = 0
        self.returned = 0
        self.closed = False

    def getconn(self):
        self.borrowed += 1
        return self.connection

    def putconn(self, connection):
        self.returned += 1

    def closeall(self):
        self.closed = True


def create_storage():
    pool = FakePool()
    return PostgresRecipeStorage(pool), pool


def test_ensure_schema_creates_recipes_table():
    storage, pool = create_storage()

    storage.ensure_schema()

    sql, params = pool.connection.executed[-1]
    assert sql.startswith("CREATE TABLE IF NOT EXISTS recipes (")
    assert "id SERIAL PRIMARY KEY" in sql
    assert "title TEXT NOT NULL" in sql
    assert "categories TEXT[]" in sql
    assert params is None
    assert pool.connection.commits == 1


def test_ensure_schema_takes_advisory_lock_before_creating_table():
    storage, pool = create_storage()

    storage.ensure_schema()

    statements = [sql for sql, _ in pool.connection.executed]
    assert len(statements) == 2
    assert statements[0] == "SELECT pg_advisory_xact_lock(%s)"
    assert pool.connection.executed[0][1] == (postgres_storage.SCHEMA_LOCK_ID,)
    assert statements[1].startswith("CREATE TABLE IF NOT EXISTS recipes")
    # Both statements share one transaction so the lock is held until commit.
    assert pool.borrowed == 1
    assert pool.connection.commits == 1


def test_list_recipes_orders_newest_first_and_maps_rows():
    storage, pool = create_storage()
    pool.connection.rows = [
        (2, "Soup", "water,salt", "boil", []),
        (1, "Toast", None, None, None),
    ]

    recipes = storage.list_recipes()

    sql, _ = pool.connection.executed[0]
    assert sql.endswith("FROM recipes ORDER BY id DESC")
    assert [recipe.id for recipe in recipes] == [2, 1]
    assert recipes[0].ingredients == "water,salt"
    assert recipes[0].instructions == "boil"
    assert recipes[1].ingredients == ""
    assert recipes[1].instructions == ""
    assert recipes[1].categories == []


def test_add_recipe_binds_parameters_and_returns_id():
    storage, pool = create_storage()
    pool.connection.rows = [(7,)]

    recipe_id = storage.add_recipe(
        title="Soup", ingredients="water,salt", instructions="boil", categories=[]
    )

    sql, params = pool.connection.executed[0]
    assert recipe_id == 7
    assert sql.startswith("INSERT INTO recipes (title, ingredients, instructions, categories)")
    assert sql.endswith("RETURNING id")
    assert params == ("Soup", "water,salt", "boil", [])
    assert pool.connection.commits == 1


def test_delete_recipe_binds_id():
    storage, pool = create_storage()

    storage.delete_recipe(42)

    assert pool.connection.executed == [("DELETE FROM recipes WHERE id = %s", (42,))]


def test_connections_are_returned_to_pool():
    storage, pool = create_storage()

    storage.ensure_schema()
    storage.delete_recipe(1)

    assert pool.borrowed == pool.returned == 2


def test_driver_errors_become_storage_errors():
    storage, pool = create_storage()
    pool.connection.error = psycopg2.OperationalError("server closed the connection")

    with pytest.raises(StorageError, match="server closed the connection"):
        storage.list_recipes()

    assert pool.connection.rollbacks == 1
    assert pool.returned == 1


def test_from_config_opens_pool_and_pings(monkeypatch):
    pool = FakePool()
    calls = []

    def fake_pool(minconn, maxconn, dsn):
        calls.append((minconn, maxconn, dsn))
        return pool

    monkeypatch.setattr(postgres_storage, "ThreadedConnectionPool", fake_pool)
    config = Config(database_url="postgresql://localhost/recipes", pool_min=2, pool_max=5)

    PostgresRecipeStorage.from_config(config)

    assert calls == [(2, 5, "postgresql://localhost/recipes")]
    assert pool.connection.executed == [("SELECT 1", None)]


def test_from_config_reports_connection_failure(monkeypatch):
    def failing_pool(*args):
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr(postgres_storage, "ThreadedConnectionPool", failing_pool)

    with pytest.raises(StorageError, match="Failed to connect to database"):
        PostgresRecipeStorage.from_config(Config(database_url="postgresql://nowhere/db"))


def test_from_config_closes_pool_when_ping_fails(monkeypatch):
    pool = FakePool()
    pool.connection.error = psycopg2.OperationalError("the database system is starting up")
    monkeypatch.setattr(postgres_storage, "ThreadedConnectionPool", lambda *args: pool)

    with pytest.raises(StorageError, match="starting up"):
        PostgresRecipeStorage.from_config(Config(database_url="postgresql://localhost/db"))

    assert pool.closed


def test_close_is_idempotent():
    storage, pool = create_storage()

    storage.close()
    storage.close()

    assert pool.closed
