"""
Completions Tracker
Flask application factory.

    from completions import create_app
    app = create_app()            # APP_ENV, or "development"
    app = create_app("testing")   # in-memory SQLite, auth off, no rate limits
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from completions.auth import init_auth
from completions.config import config
from completions.middleware.logging_config import configure_logging
from completions.middleware.timing import init_request_timing
from completions.models import db
from completions.utils.errors import E, api_error

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """SQLite ignores ON DELETE CASCADE / FK checks unless asked per connection."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Per-route limits only (the AI question endpoint); storage shared via Redis when set.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Build the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Falls back to APP_ENV, then "development".

    Returns:
        The configured Flask app with every blueprint registered.
    """
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates its environment in __init__
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    configure_logging(app)

    db.init_app(app)
    limiter.init_app(app)
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins and origins != "*":
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_auth(app)
    init_request_timing(app)

    _create_tables(app, config_name)
    _register_blueprints(app)
    _register_cli(app)
    _register_app_routes(app)
    return app


def _create_tables(app, config_name):
    from completions.models import auth, completions, import_log, insight, project  # noqa: F401

    if config_name == "production" and os.getenv("AUTO_CREATE_TABLES", "true").lower() != "true":
        return
    # The development SQLite file lives under instance/
    os.makedirs(app.instance_path, exist_ok=True)
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            logger.warning("db.create_all() failed: %s", exc)


def _register_blueprints(app):
    from completions.blueprints.admin_bp import admin_bp
    from completions.blueprints.ai_bp import ai_bp
    from completions.blueprints.auth_bp import auth_bp
    from completions.blueprints.dashboard_bp import dashboard_bp
    from completions.blueprints.export_bp import export_bp
    from completions.blueprints.import_bp import import_bp

    for bp in (admin_bp, dashboard_bp, ai_bp, import_bp, export_bp, auth_bp):
        app.register_blueprint(bp)


def _register_cli(app):
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed the demo project (one system, two subsystems, ITRs, punch, preservation)."""
        from completions.services.seed_service import seed_demo_project

        project = seed_demo_project()
        db.session.commit()
        logger.info("Seeded demo project %s (%s)", project.code, project.id,
                    extra={"project_id": project.id})


def _register_app_routes(app):
    @app.route("/api/v1/health")
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            database = "ok"
        except SQLAlchemyError:
            db.session.rollback()
            database = "unavailable"
        return {"status": "ok", "app": "Completions Tracker", "database": database}

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def payload_too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.VALIDATION_INVALID, "Too many requests", status=429,
                         details={"limit": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error on %s: %s", request.path, e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
