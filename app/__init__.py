"""
Achievement Tracker
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from app.config import config
from app.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    DependencyError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.timing import init_request_timing
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.jwt_auth import init_jwt_middleware
from app.services.container import get_services, init_services
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    default_limits=[],                     # no global limit; login sets its own
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


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

    # ── Stores & services ────────────────────────────────────────────────
    init_services(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.principal) ───────────────────────────
    init_jwt_middleware(app)

    # ── Request guard (Content-Type) ─────────────────────────────────────

    @app.before_request
    def _guard_request():
        # Content-Type validation for mutating methods
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if "json" in ct or "multipart/form-data" in ct:
                return None
            if request.get_data(cache=True):
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import auth as _auth_models               # noqa: F401
    from app.models import academic as _academic_models       # noqa: F401
    from app.models import achievement as _achievement_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if not app.testing:
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except SQLAlchemyError as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.health_bp import health_bp
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.achievement_bp import achievement_bp
    from app.blueprints.student_bp import student_bp
    from app.blueprints.lecturer_bp import lecturer_bp
    from app.blueprints.report_bp import report_bp
    from app.blueprints.user_bp import user_bp
    from app.blueprints.upload_bp import upload_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(achievement_bp)
    app.register_blueprint(student_bp)
    app.register_blueprint(lecturer_bp)
    app.register_blueprint(report_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(upload_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-roles")
    def seed_roles_cmd():
        """Seed the default roles (admin, advisor, student) and permissions."""
        from app.services.permission_service import seed_default_roles
        counts = seed_default_roles()
        db.session.commit()
        logger.info("Seeded %(permissions)s permissions, %(roles)s roles, %(grants)s grants.", counts)

    @app.cli.command("create-admin")
    @click.option("--username", default="admin", show_default=True)
    @click.option("--email", required=True)
    @click.option("--password", required=True)
    @click.option("--full-name", default="Administrator", show_default=True)
    def create_admin_cmd(username, email, password, full_name):
        """Create an admin account (run seed-roles first)."""
        user = get_services().users.create_user({
            "username": username,
            "email": email,
            "password": password,
            "full_name": full_name,
            "role": "admin",
        })
        logger.info("Admin user %s created (id=%s).", user.username, user.id)

    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_error_handlers(app):
    """Map the domain exception hierarchy and HTTP errors to JSON bodies."""

    @app.errorhandler(NotFoundError)
    def _not_found_error(e):
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(InvalidStateError)
    def _invalid_state(e):
        details = {"action": e.action}
        if e.current_status is not None:
            details["current_status"] = e.current_status
        return api_error(E.CONFLICT_STATE, str(e), details=details)

    @app.errorhandler(ValidationError)
    def _validation_error(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details or None)

    @app.errorhandler(AccessDeniedError)
    def _access_denied(e):
        return api_error(E.FORBIDDEN, str(e))

    @app.errorhandler(ConflictError)
    def _conflict(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e), details={"field": e.field})

    @app.errorhandler(AuthenticationError)
    def _authentication_error(e):
        return api_error(E.UNAUTHORIZED, str(e))

    @app.errorhandler(DependencyError)
    def _dependency_error(e):
        logger.error("Dependency failure: %s", e)
        return api_error(E.DEPENDENCY, "A backing store is unavailable", details={"store": e.store})

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(413)
    def payload_too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description, "code": "ERR_UNSUPPORTED_MEDIA_TYPE"}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
