"""
Auth Service — registration, sign-in, sign-out and token resolution.

Access token (HS256):
{
    "sub": <user_id>,
    "email": <email>,
    "role": "ADMIN" | "MANAGER" | ...,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <auth_sessions.id>
}

The ``jti`` points at a server-side ``AuthSession`` row; signing out
deactivates that row, so a token stops resolving even before it expires.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from email_validator import EmailNotValidError, validate_email
from flask import current_app

from completions.core.exceptions import AuthError, ConflictError, ValidationError
from completions.models import db
from completions.models.auth import USER_ROLES, AuthSession, UserProfile
from completions.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_EXPIRES = 3600
ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class SessionContext:
    """Identity of the signed-in user for the current request."""

    user_id: str
    email: str
    role: str
    session_id: str | None = None

    def has_role(self, *roles: str) -> bool:
        return self.role == "ADMIN" or self.role in roles


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Registration / sign-in
# ═══════════════════════════════════════════════════════════════
def register_user(email: str, password: str, name: str | None = None,
                  role: str = "VIEWER") -> UserProfile:
    """Create a user profile. Caller commits."""
    if not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError("email and password must be strings",
                              details={"email": "string required", "password": "string required"})
    try:
        email = validate_email(email or "", check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    role = (role or "VIEWER").upper()
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role: {role}", details={"role": sorted(USER_ROLES)})

    if UserProfile.query.filter(db.func.lower(UserProfile.email) == email).first():
        raise ConflictError("UserProfile", "email", email)

    user = UserProfile(
        email=email,
        name=(name or "").strip() or email.split("@")[0],
        role=role,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.flush()
    logger.info("Registered user %s role=%s", user.id, role, extra={"user_id": user.id})
    return user


def login(email: str, password: str, ip_address: str | None = None,
          user_agent: str | None = None) -> dict:
    """Verify credentials, open an AuthSession and return the access token. Caller commits."""
    if not isinstance(email, str) or not isinstance(password, str):
        raise AuthError("Invalid email or password")
    email = email.strip().lower()
    user = UserProfile.query.filter(db.func.lower(UserProfile.email) == email).first()
    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")

    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=_get_access_expires())
    session = AuthSession(
        user_id=user.id,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        expires_at=expires_at,
    )
    db.session.add(session)
    db.session.flush()

    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "type": "access",
        "iat": now,
        "exp": expires_at,
        "jti": session.id,
    }
    token = jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)
    logger.info("User %s signed in", user.id, extra={"user_id": user.id})
    return {
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": _get_access_expires(),
        "user": user.to_dict(),
    }


def logout(ctx: SessionContext) -> bool:
    """Deactivate the session behind ``ctx``. Caller commits."""
    if not ctx.session_id:
        return False
    session = db.session.get(AuthSession, ctx.session_id)
    if not session or not session.is_active:
        return False
    session.is_active = False
    session.ended_at = datetime.now(timezone.utc)
    logger.info("User %s signed out", ctx.user_id, extra={"user_id": ctx.user_id})
    return True


# ═══════════════════════════════════════════════════════════════
# Token resolution
# ═══════════════════════════════════════════════════════════════
def resolve_token(token: str) -> SessionContext:
    """Decode a bearer token and check its session is still open.

    Raises AuthError on an expired/invalid token or a closed session.
    """
    try:
        payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")

    if payload.get("type") != "access":
        raise AuthError("Invalid token")

    session = db.session.get(AuthSession, payload.get("jti"))
    if not session or not session.is_active or session.is_expired:
        raise AuthError("Session is no longer active")

    return SessionContext(
        user_id=payload["sub"],
        email=payload.get("email", ""),
        role=payload.get("role", "VIEWER"),
        session_id=session.id,
    )
