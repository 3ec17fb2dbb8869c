"""
Shared fixtures: an in-memory SQLite database per test and an app client.
"""
import os

# Must be set before config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_PER_HOUR"] = "1000000"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

import config
from database.connection import Database
from database.models import User, Profile, UserRoleRecord, AppRole
from services.policy import Principal
from services.identity_service import IdentityService


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def db(database):
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """
    Insert an account with profile and one role row, skipping bcrypt.

    Returns the Principal for the new user.
    """
    counter = {"n": 0}

    def _make(role: AppRole = AppRole.STUDENT, full_name: str = None) -> Principal:
        counter["n"] += 1
        email = f"user{counter['n']}@campus.edu"
        user = User(email=email, hashed_password="not-a-real-hash")
        user.profile = Profile(full_name=full_name or f"User {counter['n']}", email=email)
        user.roles.append(UserRoleRecord(role=role))
        db.add(user)
        db.commit()
        return Principal(id=user.id, role=role)

    return _make


@pytest.fixture
def client():
    """App client; the lifespan builds a fresh in-memory database."""
    from app import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    """Sign up through the API and return (user_id, auth headers)."""
    def _signup(email: str, full_name: str, password: str = "secret123"):
        response = client.post(
            "/api/auth/signup",
            json={"email": email, "password": password, "full_name": full_name}
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"]["id"], {"Authorization": f"Bearer {body['access_token']}"}

    return _signup


@pytest.fixture
def admin_headers(client):
    """Bootstrap an admin through the operator path, then log in over HTTP."""
    with config.db.get_session() as session:
        IdentityService.bootstrap_admin(session, "admin@campus.edu", "admin1234", "Campus Admin")

    response = client.post("/api/auth/login", json={"email": "admin@campus.edu", "password": "admin1234"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
