"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; point them at an isolated in-memory database first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test_jwt_secret_key_change_in_production_min_32_chars"
os.environ["ATTEMPT_GRACE_SECONDS"] = "5"

from collections.abc import AsyncGenerator, Generator  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

import lms.models  # noqa: E402,F401
from lms.db.base import Base  # noqa: E402
from lms.db.engine import engine  # noqa: E402
from lms.db.session import SessionLocal, get_db  # noqa: E402
from lms.main import create_app  # noqa: E402
from lms.models.activity import Activity  # noqa: E402
from lms.models.user import User, UserRole  # noqa: E402
from tests.helpers.clock import FakeClock  # noqa: E402
from tests.helpers.seed import auth_headers, create_test_activity, create_test_user  # noqa: E402


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test on the shared in-memory connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_user(db) -> User:
    """Create a test student user."""
    return create_test_user(db, role=UserRole.STUDENT)


@pytest.fixture
def other_student(db) -> User:
    return create_test_user(db, role=UserRole.STUDENT)


@pytest.fixture
def test_lecturer(db) -> User:
    return create_test_user(db, role=UserRole.LECTURER)


@pytest.fixture
def activity(db, test_lecturer) -> Activity:
    """A 600 second activity with a two-question answer key."""
    return create_test_activity(db, created_by=test_lecturer.id, time_limit_seconds=600)


@pytest.fixture
def app(db):
    """Application with the database dependency bound to the test session."""
    test_app = create_app()

    def override_get_db():
        yield db  # managed by the db fixture

    test_app.dependency_overrides[get_db] = override_get_db
    try:
        yield test_app
    finally:
        test_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """Create a FastAPI test client with database dependency override."""
    return TestClient(app)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers_student(test_user) -> dict[str, str]:
    return auth_headers(test_user)


@pytest.fixture
def auth_headers_lecturer(test_lecturer) -> dict[str, str]:
    return auth_headers(test_lecturer)
