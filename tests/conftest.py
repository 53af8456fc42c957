"""
Shared pytest fixtures for the Completions Tracker test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - session: per-test app context with tables dropped/recreated (autouse)
    - client: Flask test client
    - demo: seeded demo project (reference dashboard scenario) as ids
    - auth_headers: bearer headers for a freshly registered ADMIN user
"""

import pytest

from completions import create_app
from completions.models import db as _db
from completions.models.project import Subsystem
from completions.services.seed_service import seed_demo_project


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def demo():
    """Seed the demo project and return its ids.

    10 ITR A (7 done), 5 ITR B (2 done), punch {A open 2, B open 1, closed 3},
    1 overdue and 1 upcoming preservation task.
    """
    project = seed_demo_project()
    _db.session.commit()
    system = project.systems.first()
    subsystems = system.subsystems.order_by(Subsystem.code).all()
    return {
        "project_id": project.id,
        "system_id": system.id,
        "subsystem_ids": [s.id for s in subsystems],
    }


@pytest.fixture()
def auth_headers(client):
    """Register + sign in an ADMIN user and return JSON bearer headers."""
    res = client.post("/api/v1/auth/register", json={
        "email": "admin@acme-energy.com",
        "password": "Secret123!",
        "name": "Admin",
        "role": "ADMIN",
    })
    assert res.status_code == 201, res.get_json()
    res = client.post("/api/v1/auth/login", json={
        "email": "admin@acme-energy.com",
        "password": "Secret123!",
    })
    assert res.status_code == 200, res.get_json()
    return {
        "Authorization": f"Bearer {res.get_json()['access_token']}",
        "Content-Type": "application/json",
    }
