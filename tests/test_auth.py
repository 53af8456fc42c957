"""
Auth tests.

Tests cover:
  - Password hashing (bcrypt)
  - Registration: validation, duplicates, elevated-role rule
  - Sign-in / sign-out and the session behind the token
  - Request gating with API_AUTH_ENABLED on: 401 without a token, 403 on role
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from completions.models import db
from completions.models.auth import AuthSession
from completions.utils.crypto import hash_password, verify_password


def _register(client, email, password="Secret123!", role=None, headers=None):
    body = {"email": email, "password": password, "name": "Usuario"}
    if role:
        body["role"] = role
    return client.post("/api/v1/auth/register", json=body, headers=headers)


def _login(client, email, password="Secret123!"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def _bearer(res):
    return {"Authorization": f"Bearer {res.get_json()['access_token']}"}


@pytest.fixture()
def auth_enabled(app, monkeypatch):
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")


# ═══════════════════════════════════════════════════════════════
# Password hashing
# ═══════════════════════════════════════════════════════════════

def test_password_hash_roundtrip():
    hashed = hash_password("Secret123!")
    assert hashed != "Secret123!"
    assert verify_password("Secret123!", hashed)
    assert not verify_password("secret123!", hashed)
    assert not verify_password("Secret123!", None)


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════

class TestRegister:
    def test_register_defaults_to_viewer(self, client):
        res = _register(client, "Ana@Acme-Energy.com")
        assert res.status_code == 201
        user = res.get_json()
        assert user["role"] == "VIEWER"
        assert "password_hash" not in user

    def test_duplicate_email(self, client):
        _register(client, "ana@acme-energy.com")
        res = _register(client, "ana@acme-energy.com")
        assert res.status_code == 409

    def test_duplicate_email_ignores_case(self, client):
        res = _register(client, "Alice@Acme-Energy.com")
        assert res.status_code == 201
        assert res.get_json()["email"] == "alice@acme-energy.com"

        res = _register(client, "alice@acme-energy.com", password="Other-pass1")
        assert res.status_code == 409
        assert _login(client, "ALICE@acme-energy.com").status_code == 200

    def test_non_string_credentials(self, client):
        res = client.post("/api/v1/auth/register", json={"email": 123, "password": "Secret123!"})
        assert res.status_code == 400
        res = client.post("/api/v1/auth/login", json={"email": ["a@b.com"], "password": 1})
        assert res.status_code == 401

    def test_invalid_email(self, client):
        res = _register(client, "not-an-email")
        assert res.status_code == 400
        assert "email" in res.get_json()["details"]

    def test_short_password(self, client):
        res = _register(client, "ana@acme-energy.com", password="short")
        assert res.status_code == 400

    def test_unknown_role(self, client, auth_headers):
        res = _register(client, "ana@acme-energy.com", role="OWNER", headers=auth_headers)
        assert res.status_code == 400

    def test_first_user_may_be_admin(self, client):
        res = _register(client, "root@acme-energy.com", role="ADMIN")
        assert res.status_code == 201
        assert res.get_json()["role"] == "ADMIN"

    def test_elevated_role_needs_admin(self, client, auth_headers):
        res = _register(client, "pm@acme-energy.com", role="MANAGER")
        assert res.status_code == 403

        res = _register(client, "pm@acme-energy.com", role="MANAGER", headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["role"] == "MANAGER"


# ═══════════════════════════════════════════════════════════════
# Sign-in / sign-out
# ═══════════════════════════════════════════════════════════════

class TestSession:
    def test_login_returns_bearer_token(self, app, client):
        _register(client, "ana@acme-energy.com")
        res = _login(client, "ANA@acme-energy.com")
        assert res.status_code == 200
        data = res.get_json()
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == app.config["JWT_ACCESS_EXPIRES"]

        payload = jwt.decode(data["access_token"], app.config["JWT_SECRET_KEY"],
                             algorithms=["HS256"])
        assert payload["role"] == "VIEWER"
        assert db.session.get(AuthSession, payload["jti"]).is_active

    def test_wrong_password(self, client):
        _register(client, "ana@acme-energy.com")
        assert _login(client, "ana@acme-energy.com", "Wrong-pass").status_code == 401
        assert _login(client, "nobody@acme-energy.com").status_code == 401

    def test_login_requires_fields(self, client):
        res = client.post("/api/v1/auth/login", json={"email": "ana@acme-energy.com"})
        assert res.status_code == 400

    def test_me(self, client, auth_headers):
        res = client.get("/api/v1/auth/me", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["email"] == "admin@acme-energy.com"

    def test_me_requires_session(self, client):
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_logout_closes_session(self, client, auth_headers):
        res = client.post("/api/v1/auth/logout", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json() == {"logged_out": True}

        # The token no longer resolves to a session
        assert client.get("/api/v1/auth/me", headers=auth_headers).status_code == 401

    def test_expired_session(self, client, auth_headers):
        session = AuthSession.query.one()
        session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.session.commit()
        assert client.get("/api/v1/auth/me", headers=auth_headers).status_code == 401


# ═══════════════════════════════════════════════════════════════
# Request gating (API_AUTH_ENABLED=true)
# ═══════════════════════════════════════════════════════════════

class TestGating:
    def test_anonymous_reads_pass_when_disabled(self, client):
        assert client.get("/api/v1/projects").status_code == 200

    def test_health_is_public(self, client, auth_enabled):
        assert client.get("/api/v1/health").status_code == 200

    def test_anonymous_is_rejected(self, client, auth_enabled):
        res = client.get("/api/v1/projects")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token_is_rejected(self, client, auth_enabled):
        res = client.get("/api/v1/projects", headers={"Authorization": "Bearer abc.def.ghi"})
        assert res.status_code == 401

    def test_viewer_reads_but_cannot_write(self, client, auth_headers, auth_enabled):
        _register(client, "viewer@acme-energy.com")
        viewer = _bearer(_login(client, "viewer@acme-energy.com"))

        assert client.get("/api/v1/projects", headers=viewer).status_code == 200
        res = client.post("/api/v1/projects", headers=viewer, json={"code": "P", "name": "P"})
        assert res.status_code == 403

    def test_manager_and_admin_can_write(self, client, auth_headers, auth_enabled):
        _register(client, "pm@acme-energy.com", role="MANAGER", headers=auth_headers)
        manager = _bearer(_login(client, "pm@acme-energy.com"))

        res = client.post("/api/v1/projects", headers=manager, json={"code": "P1", "name": "P"})
        assert res.status_code == 201
        res = client.post("/api/v1/projects", headers=auth_headers, json={"code": "P2", "name": "P"})
        assert res.status_code == 201
