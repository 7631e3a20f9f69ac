"""
Shared pytest fixtures for the permitflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB reset (autouse)
    - client: Flask test client (function-scoped)
    - contractor / other_contractor / hse / admin: pre-created users
    - actor: build an Actor for a user (service-level tests)
    - auth_headers: bearer-token headers for a user (API tests)
    - password: plain-text password of the pre-created users
"""

import pytest

from permitflow import create_app
from permitflow.models import db as _db
from permitflow.models.auth import ROLE_ADMIN, ROLE_CONTRACTOR, ROLE_HSE, User
from permitflow.services.jwt_service import generate_access_token
from permitflow.services.policy import Actor
from permitflow.utils.crypto import hash_password

TEST_PASSWORD = "correct-horse-battery"


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


# ── Users ────────────────────────────────────────────────────────────────


def make_user(username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def contractor():
    return make_user("carla", ROLE_CONTRACTOR)


@pytest.fixture()
def other_contractor():
    return make_user("omar", ROLE_CONTRACTOR)


@pytest.fixture()
def hse():
    return make_user("hana", ROLE_HSE)


@pytest.fixture()
def admin():
    return make_user("ada", ROLE_ADMIN)


@pytest.fixture()
def actor():
    """Return a function that turns a User into a service-layer Actor."""
    def _actor(user: User) -> Actor:
        return Actor(id=user.id, username=user.username, role=user.role)
    return _actor


@pytest.fixture()
def auth_headers():
    """Return a function that builds Authorization headers for a User."""
    def _headers(user: User) -> dict:
        token = generate_access_token(user.id, user.username, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture()
def password():
    """Plain-text password shared by every pre-created user."""
    return TEST_PASSWORD
