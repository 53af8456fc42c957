"""
Completions Tracker
Session context middleware and access decorators.

Provides:
    - init_auth(app): resolves ``Authorization: Bearer <token>`` into
      ``g.session_context`` (a SessionContext, or None) on every API request
    - require_session: the endpoint needs a signed-in user, whatever
      API_AUTH_ENABLED says (bulk imports record who ran them)
    - require_role(*roles): role gate, ADMIN always passes

Security model:
    - With API_AUTH_ENABLED=true every /api/v1/* route needs a session,
      except health and the sign-in / registration entry points
    - With API_AUTH_ENABLED=false (development, tests) anonymous requests
      pass, but a bearer token is still resolved when one is sent
"""

import functools
import logging

from flask import current_app, g, request

from completions.core.exceptions import AuthError
from completions.services.auth_service import resolve_token
from completions.utils.errors import E, api_error

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({
    "/api/v1/health",
    "/api/v1/auth/login",
    "/api/v1/auth/register",
})


def _is_auth_enabled() -> bool:
    value = str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return value.lower() not in ("false", "0", "no", "off")


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[7:].strip() or None


def current_session():
    """The SessionContext of the current request, or None."""
    return getattr(g, "session_context", None)


# ── Decorators ───────────────────────────────────────────────────────────────

def require_session(f):
    """Decorator: reject the request with 401 unless a user is signed in."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_session() is None:
            return api_error(E.UNAUTHORIZED, "Authentication required", status=401)
        return f(*args, **kwargs)

    return decorated


def require_role(*roles: str):
    """
    Decorator: require one of ``roles`` when auth is enabled.

    Usage:
        @admin_bp.route("/projects/<project_id>", methods=["DELETE"])
        @require_role("MANAGER")
        def delete_project(project_id): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            if not _is_auth_enabled():
                return f(*args, **kwargs)
            ctx = current_session()
            if ctx is None:
                return api_error(E.UNAUTHORIZED, "Authentication required", status=401)
            if not ctx.has_role(*roles):
                logger.warning(
                    "Access denied: role '%s' tried to access %s",
                    ctx.role, request.path, extra={"user_id": ctx.user_id},
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")
            return f(*args, **kwargs)
        return decorated
    return decorator


# ── before_request hook installer ────────────────────────────────────────────

def init_auth(app):
    """Install the session-context hook for /api/v1/* routes."""

    @app.before_request
    def _resolve_session():
        g.session_context = None
        if not request.path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None

        token = _bearer_token()
        if token:
            try:
                g.session_context = resolve_token(token)
            except AuthError as exc:
                if _is_auth_enabled() and request.path not in PUBLIC_PATHS:
                    return api_error(E.UNAUTHORIZED, str(exc), status=exc.status_code)
                logger.debug("Ignoring bearer token: %s", exc)

        if (
            g.session_context is None
            and _is_auth_enabled()
            and request.path not in PUBLIC_PATHS
        ):
            return api_error(E.UNAUTHORIZED, "Authentication required", status=401)
        return None

    with app.app_context():
        logger.info("Auth middleware installed (enabled=%s)", _is_auth_enabled())
