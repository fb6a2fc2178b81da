class RecipeboxError(Exception):
    """Base class for errors raised by the recipe application."""


class ConfigError(RecipeboxError):
    """Raised when the environment does not describe a usable configuration."""


class StorageError(RecipeboxError):
    """Raised when the recipe database cannot complete an operation."""


__all__ = ["RecipeboxError", "ConfigError", "StorageError"]
