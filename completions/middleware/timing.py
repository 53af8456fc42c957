"""
Request timing middleware.

Records request duration, tags every response with X-Request-ID and
X-Request-Duration-Ms, and logs slow or failing requests with their
project/system scope.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_SKIP_LOG = frozenset({"/api/v1/health"})

SLOW_THRESHOLD_MS = 1000


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:12])

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        if request.path in _SKIP_LOG or request.path.startswith("/static"):
            return response

        project_id, system_id = _extract_scope()
        ctx = getattr(g, "session_context", None)
        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.remote_addr,
            "request_id": getattr(g, "request_id", ""),
            "user_id": ctx.user_id if ctx else None,
            "project_id": project_id,
            "system_id": system_id,
        }
        if duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow request: %s %s %d (%.0fms)",
                           request.method, request.path,
                           response.status_code, duration_ms, extra=extra)
        elif response.status_code >= 500:
            logger.error("Server error: %s %s %d (%.0fms)",
                         request.method, request.path,
                         response.status_code, duration_ms, extra=extra)
        else:
            logger.debug("Request: %s %s %d (%.0fms)",
                         request.method, request.path,
                         response.status_code, duration_ms, extra=extra)

        return response


def _extract_scope() -> tuple[str | None, str | None]:
    """Best-effort project/system ids from the URL, query string or JSON body."""
    view_args = request.view_args or {}
    project_id = view_args.get("project_id") or request.args.get("project_id")
    system_id = view_args.get("system_id") or request.args.get("system_id")
    if (project_id is None or system_id is None) and request.is_json:
        payload = request.get_json(silent=True) or {}
        if isinstance(payload, dict):
            project_id = project_id or payload.get("project_id")
            system_id = system_id or payload.get("system_id")
    if project_id is None and request.form:
        project_id = request.form.get("project_id")
        system_id = system_id or request.form.get("system_id")
    return project_id, system_id
