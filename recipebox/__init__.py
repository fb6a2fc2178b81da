import atexit
import time
from typing import Optional

from flask import Flask, g, render_template, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ConfigError, StorageError
from .models import Recipe
from .postgres_storage import PostgresRecipeStorage
from .storage import RecipeRepository

INDEX_TEMPLATE = "index.html"
RECIPE_LIST_TEMPLATE = "recipe-list.html"
REQUIRED_TEMPLATES = (INDEX_TEMPLATE, RECIPE_LIST_TEMPLATE)

PLAIN_TEXT = {"Content-Type": "text/plain; charset=utf-8"}


def create_app(
    storage: Optional[RecipeRepository] = None, config: Optional[Config] = None
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional recipe repository. When ``None`` the application will use
        :class:`PostgresRecipeStorage` configured through environment variables.
    config:
        Optional settings. When ``None`` and no storage is given, settings are
        read with :meth:`Config.from_env`, which requires ``DATABASE_URL``.

    Any failure to configure the database, create the schema or load the
    templates propagates to the caller so the process never serves traffic in
    a half-initialised state.
    """

    app = Flask(__name__)

    if storage is None:
        if config is None:
            config = Config.from_env()
        storage = PostgresRecipeStorage.from_config(config)
        atexit.register(storage.close)

    if config is not None:
        app.logger.setLevel(config.log_level)
        app.logger.info(
            "Using database pool of %d-%d connections, port %d",
            config.pool_min,
            config.pool_max,
            config.port,
        )
    else:
        app.logger.setLevel("INFO")

    storage.ensure_schema()
    app.config["RECIPE_STORAGE"] = storage

    for template_name in REQUIRED_TEMPLATES:
        app.jinja_env.get_template(template_name)

    _register_middleware(app)
    _register_error_handlers(app)

    def render(template_name: str, **context) -> str:
        # Rendering is best effort: a broken template yields an empty body, not a 500.
        try:
            return render_template(template_name, **context)
        except Exception:
            app.logger.exception("Failed to render template %s", template_name)
            return ""

    def recipe_list() -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]
        recipes = list(storage_backend.list_recipes())
        return render(RECIPE_LIST_TEMPLATE, recipes=recipes)

    @app.get("/")
    def index() -> str:
        return render(INDEX_TEMPLATE)

    @app.get("/recipes")
    def list_recipes() -> str:
        return recipe_list()

    @app.post("/recipes")
    def create_recipe():
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        title = request.form.get("title", "")
        ingredients = request.form.get("ingredients", "")
        instructions = request.form.get("instructions", "")

        if not title:
            return "Title required", 400, PLAIN_TEXT

        recipe_id = storage_backend.add_recipe(
            title=title,
            ingredients=ingredients,
            instructions=instructions,
            categories=[],
        )
        app.logger.debug("Created recipe %d", recipe_id)

        return recipe_list()

    @app.delete("/recipes/<int:recipe_id>")
    def delete_recipe(recipe_id: int) -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]
        storage_backend.delete_recipe(recipe_id)
        app.logger.debug("Deleted recipe %d", recipe_id)
        return recipe_list()

    @app.get("/health")
    def health():
        return "OK", 200, PLAIN_TEXT

    return app


def _register_middleware(app: Flask) -> None:
    @app.before_request
    def start_timer() -> None:
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        app.logger.info(
            '"%s %s" %s %.1fms',
            request.method,
            request.full_path.rstrip("?"),
            response.status_code,
            elapsed_ms,
        )
        return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(StorageError)
    def storage_error(exc: StorageError):
        app.logger.error("Storage error on %s %s: %s", request.method, request.path, exc)
        return str(exc), 500, PLAIN_TEXT

    @app.errorhandler(Exception)
    def unhandled_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return "Internal Server Error", 500, PLAIN_TEXT


__all__ = ["create_app", "Config", "ConfigError", "Recipe", "StorageError"]
