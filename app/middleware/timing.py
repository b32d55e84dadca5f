"""
Request timing / access log middleware.

Every response gets ``X-Request-ID`` (echoed from the request when the
client sent one) and ``X-Request-Duration-Ms``. One access-log record is
written per request, except for the health probes:

    > SLOW_THRESHOLD_MS  → WARNING
    5xx                  → ERROR
    otherwise            → DEBUG
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

QUIET_PATHS = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

SLOW_THRESHOLD_MS = 1000


def _access_level(status_code, duration_ms):
    if duration_ms > SLOW_THRESHOLD_MS:
        return logging.WARNING
    if status_code >= 500:
        return logging.ERROR
    return logging.DEBUG


def init_request_timing(app: Flask):
    """Register the timer hooks on ``app``."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _access_log(response):
        started = g.get("request_start")
        if started is None:
            return response

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.get("request_id", "")
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        if request.path in QUIET_PATHS:
            return response

        principal = g.get("principal")
        logger.log(
            _access_level(response.status_code, duration_ms),
            "%s %s %d (%.0fms)", request.method, request.path, response.status_code, duration_ms,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "request_id": g.get("request_id"),
                "user_id": principal.user_id if principal is not None else None,
                "achievement_id": (request.view_args or {}).get("achievement_id"),
            },
        )
        return response
