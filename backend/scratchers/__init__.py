# backend/scratchers/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.slots import slots_bp
    from .routes.products import products_bp
    from .routes.packs import packs_bp
    from .routes.snapshots import snapshots_bp
    from .routes.calculations import calculations_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(slots_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(packs_bp)
    app.register_blueprint(snapshots_bp)
    app.register_blueprint(calculations_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
