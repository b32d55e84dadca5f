"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — process is up (load balancer probe)
    GET /api/v1/health/live   — relational DB and content store reachable;
                                503 "degraded" when either is down
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DependencyError
from app.models import db
from app.services.container import get_services

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _ping_database():
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise DependencyError("reference_store", "ping", exc) from exc


def _probe(name, ping, **info):
    started = time.perf_counter()
    try:
        ping()
    except DependencyError as exc:
        logger.error("Health check: %s unavailable: %s", name, exc)
        return False, {"status": "error", "detail": str(exc), **info}
    elapsed = (time.perf_counter() - started) * 1000
    return True, {"status": "ok", "latency_ms": round(elapsed, 1), **info}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    contents = get_services().contents
    db_ok, database = _probe("database", _ping_database)
    content_ok, content_store = _probe("content_store", contents.ping, backend=type(contents).__name__)

    healthy = db_ok and content_ok
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": {
            "database": database,
            "content_store": content_store,
            "app": {
                "name": "Achievement Tracker",
                "debug": current_app.debug,
                "testing": current_app.testing,
            },
        },
    }), 200 if healthy else 503
