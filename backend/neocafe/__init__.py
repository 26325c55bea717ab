# backend/neocafe/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate

DEV_ORIGINS = {
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
}


def _allowed_origins(app: Flask) -> set[str]:
    raw = app.config.get("CORS_ORIGINS") or ""
    configured = {o.strip() for o in raw.split(",") if o.strip()}
    return configured or DEV_ORIGINS


def create_app(config_overrides: dict | None = None, *, notifier=None, gateway=None) -> Flask:
    """
    Application factory.

    notifier / gateway replace the default broadcaster and Stripe adapter
    (tests pass recording doubles).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services import notification_service, payment_gateway
    notification_service.init_app(app, notifier)
    payment_gateway.init_app(app, gateway)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.rooms import rooms_bp
    from .routes.sessions import sessions_bp
    from .routes.wallet import wallet_bp
    from .routes.orders import orders_bp
    from .routes.menu import menu_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(rooms_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(menu_bp)
    app.register_blueprint(admin_bp)

    allowed_origins = _allowed_origins(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, Stripe-Signature"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
