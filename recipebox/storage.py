from __future__ import annotations

from typing import Iterable, List, Protocol

from .models import Recipe


class RecipeRepository(Protocol):
    """Protocol describing the behaviour required by the web layer."""

    def ensure_schema(self) -> None:
        """Create the backing table if it does not exist yet."""

    def list_recipes(self) -> Iterable[Recipe]:
        """Return an iterable of stored recipes ordered newest first."""

    def add_recipe(
        self,
        *,
        title: str,
        ingredients: str,
        instructions: str,
        categories: List[str],
    ) -> int:
        """Persist a new recipe and return its assigned id."""

    def delete_recipe(self, recipe_id: int) -> None:
        """Remove a recipe. Unknown ids are not an error."""


__all__ = ["RecipeRepository"]
