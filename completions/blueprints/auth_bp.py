"""
Auth Blueprint — sign-in sessions.

  POST /api/v1/auth/register   — { email, password, name?, role? } → user profile
  POST /api/v1/auth/login      — { email, password } → bearer token
  POST /api/v1/auth/logout     — deactivate the current session
  GET  /api/v1/auth/me         — current user profile
"""

from flask import Blueprint, jsonify, request

from completions.auth import current_session, require_session
from completions.models import db
from completions.models.auth import UserProfile
from completions.services import auth_service
from completions.utils.errors import E, api_error, register_error_handlers
from completions.utils.helpers import db_commit_or_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


@auth_bp.route("/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    role = data.get("role") or "VIEWER"
    # Elevated roles come from an admin, except for the very first account.
    if str(role).upper() != "VIEWER" and UserProfile.query.count() > 0:
        ctx = current_session()
        if ctx is None or ctx.role != "ADMIN":
            return api_error(E.FORBIDDEN, "Only an admin can assign elevated roles")
    user = auth_service.register_user(
        data.get("email"), data.get("password"), data.get("name"), role,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    if not data.get("email") or not data.get("password"):
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")
    result = auth_service.login(
        data["email"],
        data["password"],
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result)


@auth_bp.route("/logout", methods=["POST"])
@require_session
def logout():
    ended = auth_service.logout(current_session())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"logged_out": ended})


@auth_bp.route("/me", methods=["GET"])
@require_session
def me():
    user = db.session.get(UserProfile, current_session().user_id)
    if user is None:
        return api_error(E.NOT_FOUND, "User not found")
    return jsonify(user.to_dict())
