# backend/gemalery/__init__.py
from flask import Flask, current_app, request

from .config import Settings
from .extensions import db, migrate

SETTINGS_KEY = "gemalery.settings"


def get_settings() -> Settings:
    """The Settings object the running app was built with."""
    return current_app.extensions[SETTINGS_KEY]


def create_app(settings: Settings | None = None) -> Flask:
    if settings is None:
        settings = Settings.from_env()

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(settings.flask_config())
    app.extensions[SETTINGS_KEY] = settings

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.catalog import categories_bp, products_bp, variants_bp
    from .routes.cart import cart_bp, shipping_bp
    from .routes.checkout import checkout_bp
    from .routes.pos import pos_bp
    from .routes.orders import orders_bp
    from .routes.inventory import inventory_bp
    from .routes.purchases import purchases_bp, suppliers_bp
    from .routes.customers import customers_bp
    from .routes.expenses import expenses_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(variants_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(shipping_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(reports_bp)

    allowed_origins = set(settings.cors_origins)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
