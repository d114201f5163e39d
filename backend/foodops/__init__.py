# backend/foodops/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Commit-time change notifications
    from .services import notification_service
    notification_service.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.parties import parties_bp
    from .routes.inventory import inventory_bp
    from .routes.cutoff import cutoff_bp
    from .routes.orders import orders_bp
    from .routes.aggregation import aggregation_bp
    from .routes.purchasing import purchasing_bp
    from .routes.ledgers import ledgers_bp
    from .routes.statements import statements_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(parties_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(cutoff_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(aggregation_bp)
    app.register_blueprint(purchasing_bp)
    app.register_blueprint(ledgers_bp)
    app.register_blueprint(statements_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in set(app.config.get("CORS_ALLOWED_ORIGINS") or ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
