# backend/warehouse/__init__.py
import atexit

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Live event stream, push messaging and geocoding
    from .events import EventHub
    from .services.push_service import FirebasePushSender
    from .services.location_service import Geocoder

    hub = EventHub(app)
    hub.start()
    atexit.register(hub.stop)
    FirebasePushSender(app)
    Geocoder(app)

    # Page access is checked before any page route runs
    from .page_guard import init_page_guard
    init_page_guard(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp
    from .routes.products import products_bp
    from .routes.categories import categories_bp
    from .routes.product_history import product_history_bp
    from .routes.analytics import analytics_bp
    from .routes.shipments import shipments_bp
    from .routes.deliveries import deliveries_bp
    from .routes.drivers import drivers_bp
    from .routes.notifications import notifications_bp
    from .routes.events import events_bp
    from .routes.rate_limits import rate_limits_bp
    from .routes.locations import locations_bp
    from .routes.pages import pages_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(product_history_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(shipments_bp)
    app.register_blueprint(deliveries_bp)
    app.register_blueprint(drivers_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(rate_limits_bp)
    app.register_blueprint(locations_bp)
    app.register_blueprint(pages_bp)

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
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
