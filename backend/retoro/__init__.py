# backend/retoro/__init__.py
from flask import Flask, request

from .config import Config
from .errors import ApiError, api_error_response
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.return_items import return_items_bp
    from .routes.retailers import retailers_bp
    from .routes.currency import currency_bp
    from .routes.settings import settings_bp
    from .routes.support import support_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(return_items_bp)
    app.register_blueprint(retailers_bp)
    app.register_blueprint(currency_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(support_bp)

    # Errors raised before a route's own handler runs (caller resolution)
    @app.errorhandler(ApiError)
    def handle_api_error(err):
        return api_error_response(err)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = (
                "Authorization, Content-Type, X-Anonymous-User-Id, x-api-key"
            )
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
