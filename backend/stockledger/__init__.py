# backend/stockledger/__init__.py
import logging

from flask import Flask

from .celery_app import celery_init_app
from .config import Config
from .extensions import db, status_cache


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.getLogger("stockledger").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    status_cache.init_app(app)
    celery_init_app(app)

    # Import models so create_all() sees every table, and tasks so Celery registers them
    from . import models  # noqa: F401
    from . import tasks  # noqa: F401

    from .routes.system import system_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(reports_bp)

    from .cli import register_commands
    register_commands(app)

    return app
