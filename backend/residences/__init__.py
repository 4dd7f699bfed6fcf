# backend/residences/__init__.py
from flask import Flask, request

from .config import Config
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

    from .services.concurrency import serialize_sqlite_writers
    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            serialize_sqlite_writers(db.engine)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.apartments import apartments_bp
    from .routes.relationships import relationships_bp
    from .routes.transfers import transfers_bp
    from .routes.committee import committee_bp
    from .routes.notifications import notifications_bp
    from .routes.users import users_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(apartments_bp)
    app.register_blueprint(relationships_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(committee_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(users_bp)

    allowed_origins = app.config.get("CORS_ALLOWED_ORIGINS", set())

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
