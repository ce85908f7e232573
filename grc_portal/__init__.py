"""
GRC Consultant & Scoping Portal
Flask Application Factory.

Usage:
    from grc_portal import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from grc_portal.config import config
from grc_portal.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from grc_portal.middleware.logging_config import configure_logging
from grc_portal.middleware.rate_limiter import init_rate_limits
from grc_portal.middleware.timing import init_request_timing
from grc_portal.models import db
from grc_portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _register_error_handlers(app):
    """Map service exceptions onto the standard JSON error body."""
    # Flask resolves handlers by MRO, so the 409 mapping wins over ValidationError
    from grc_portal.services.consultant_lifecycle import InvalidTransitionError

    @app.errorhandler(InvalidTransitionError)
    def _handle_transition(error):
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @app.errorhandler(ValidationError)
    def _handle_validation(error):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ConflictError)
    def _handle_conflict(error):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @app.errorhandler(StorageError)
    def _handle_storage(error):
        logger.error("Storage error on %s %s: %s", request.method, request.path, error)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed", details={"method": request.method})

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from grc_portal.models import auth as _auth_models          # noqa: F401
    from grc_portal.models import client as _client_models      # noqa: F401
    from grc_portal.models import consultant as _consultant_models  # noqa: F401
    from grc_portal.models import scoping as _scoping_models    # noqa: F401

    # ── Auto-create tables outside production (migrations own prod schema) ──
    if config_name != "production":
        with app.app_context():
            if config_name == "development":
                os.makedirs(app.instance_path, exist_ok=True)  # SQLite file lives here
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from grc_portal.blueprints.client_bp import client_bp
    from grc_portal.blueprints.consultant_bp import consultant_bp
    from grc_portal.blueprints.health_bp import health_bp
    from grc_portal.blueprints.scoping_form_bp import scoping_form_bp

    app.register_blueprint(consultant_bp)
    app.register_blueprint(scoping_form_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(health_bp)

    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
