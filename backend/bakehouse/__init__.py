# backend/bakehouse/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Service modules log under "bakehouse.services.*"
    logging.getLogger("bakehouse").setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def build_engine(app: Flask | None = None):
    """
    InventoryEngine over the SQL collection store, configured from the app.

    Must be called (and the engine used) inside an application context.
    """
    from flask import current_app
    from .engine import InventoryEngine
    from .services.collection_store import SqlCollectionStore

    app = app or current_app
    return InventoryEngine.from_config(SqlCollectionStore(), app.config)
