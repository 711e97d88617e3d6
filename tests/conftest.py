"""
Test configuration and fixtures for the redirect service.
This centralizes all test setup, making individual tests clean.
"""

import asyncio
import os

# Settings are read at import time, configure them before importing the app
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["HIT_WORKER_EMBEDDED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["INITIAL_USERNAME"] = "admin"
os.environ["INITIAL_PASSWORD"] = "admin-password"

import pytest
from argon2 import PasswordHasher
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from redirector_app.database.connection import Base, get_db
from redirector_app.dependencies import get_password_codec, get_queue
from redirector_app.models import User, UserRole
from redirector_app.security import PasswordCodec, TokenCodec
from redirector_app.services.user_service import UserService

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-password"
MANAGER_USERNAME = "manager"
MANAGER_PASSWORD = "manager-password"

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Cheap Argon2 parameters, hashing with the defaults dominates the test run
fast_password_codec = PasswordCodec(PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1))


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    This ensures tests are isolated and don't affect each other.
    """
    # Create tables
    Base.metadata.create_all(bind=engine)

    # Create session
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        # Cleanup
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def hit_queue():
    """Fresh in-memory hit queue per test"""
    get_queue.cache_clear()
    queue = get_queue()
    yield queue
    get_queue.cache_clear()


@pytest.fixture
def token_codec():
    return TokenCodec(secret="test-secret", algorithm="HS256", ttl_seconds=3600)


@pytest.fixture
def user_service(db_session, token_codec):
    return UserService(db=db_session, passwords=fast_password_codec, tokens=token_codec)


@pytest.fixture
def admin(db_session, user_service):
    """The bootstrap admin (created by the app lifespan or here, whichever runs first)"""
    user = asyncio.run(user_service.ensure_initial_user(ADMIN_USERNAME, ADMIN_PASSWORD))
    if user is None:
        user = db_session.query(User).filter(User.username == ADMIN_USERNAME).one()
    return user


@pytest.fixture
def manager(admin, user_service):
    user, _ = asyncio.run(user_service.create_user(
        admin, MANAGER_USERNAME, UserRole.MANAGER, password=MANAGER_PASSWORD
    ))
    return user


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database dependency overridden.
    This is the main fixture that tests will use.
    """
    def override_get_db():
        yield db_session

    # Override the database dependency
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_password_codec] = lambda: fast_password_codec

    # Create test client
    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()


def login(client: TestClient, username: str, password: str) -> dict:
    """Authorization header for a user"""
    response = client.post("/api/users/token", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client, admin):
    return login(client, ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def manager_headers(client, manager):
    return login(client, MANAGER_USERNAME, MANAGER_PASSWORD)
