from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List

import psycopg2
from psycopg2.pool import ThreadedConnectionPool

from .config import Config
from .errors import StorageError
from .models import Recipe
from .storage import RecipeRepository


# Serializes schema creation across worker processes starting at the same time.
SCHEMA_LOCK_ID = 7_314_201
SCHEMA_LOCK_SQL = "SELECT pg_advisory_xact_lock(%s)"

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS recipes (
        id SERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        ingredients TEXT,
        instructions TEXT,
        categories TEXT[]
    )
"""

LIST_RECIPES_SQL = (
    "SELECT id, title, ingredients, instructions, categories FROM recipes ORDER BY id DESC"
)

INSERT_RECIPE_SQL = (
    "INSERT INTO recipes (title, ingredients, instructions, categories) "
    "VALUES (%s, %s, %s, %s) RETURNING id"
)

DELETE_RECIPE_SQL = "DELETE FROM recipes WHERE id = %s"


class PostgresRecipeStorage(RecipeRepository):
    """PostgreSQL backed recipe storage using plain parameterized SQL.

    Connections come from a psycopg2 connection pool that is safe to share
    between request threads. Each public method runs in its own transaction
    and wraps driver failures in :class:`~recipebox.errors.StorageError`.
    """

    def __init__(self, pool) -> None:
        self._pool = pool

    @classmethod
    def from_config(cls, config: Config) -> "PostgresRecipeStorage":
        """Open a connection pool for ``config`` and verify the database answers."""

        try:
            pool = ThreadedConnectionPool(config.pool_min, config.pool_max, config.database_url)
        except psycopg2.Error as exc:
            raise StorageError(f"Failed to connect to database: {exc}") from exc

        storage = cls(pool)
        try:
            storage.ping()
        except StorageError:
            storage.close()
            raise
        return storage

    def ping(self) -> None:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1")

    def ensure_schema(self) -> None:
        with self._cursor() as cursor:
            cursor.execute(SCHEMA_LOCK_SQL, (SCHEMA_LOCK_ID,))
            cursor.execute(CREATE_TABLE_SQL)

    def list_recipes(self) -> List[Recipe]:
        with self._cursor() as cursor:
            cursor.execute(LIST_RECIPES_SQL)
            rows = cursor.fetchall()
        return [self._row_to_recipe(row) for row in rows]

    def add_recipe(
        self,
        *,
        title: str,
        ingredients: str,
        instructions: str,
        categories: List[str],
    ) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                INSERT_RECIPE_SQL,
                (title, ingredients, instructions, list(categories)),
            )
            (recipe_id,) = cursor.fetchone()
        return recipe_id

    def delete_recipe(self, recipe_id: int) -> None:
        with self._cursor() as cursor:
            cursor.execute(DELETE_RECIPE_SQL, (recipe_id,))

    def close(self) -> None:
        if not self._pool.closed:
            self._pool.closeall()

    @contextmanager
    def _cursor(self) -> Iterator:
        try:
            connection = self._pool.getconn()
        except psycopg2.Error as exc:
            raise StorageError(str(exc)) from exc

        try:
            # The connection context commits on success and rolls back on error.
            with connection:
                with connection.cursor() as cursor:
                    yield cursor
        except psycopg2.Error as exc:
            raise StorageError(str(exc).strip()) from exc
        finally:
            self._pool.putconn(connection)

    @staticmethod
    def _row_to_recipe(row) -> Recipe:
        recipe_id, title, ingredients, instructions, categories = row
        return Recipe(
            id=recipe_id,
            title=title,
            ingredients=ingredients or "",
            instructions=instructions or "",
            categories=list(categories or []),
        )


__all__ = ["PostgresRecipeStorage"]
