"""Pytest configuration and fixtures."""

import os

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/uniplug_notifications", "/uniplug_notifications_test"
    )
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

# Must be set before src modules read their settings
os.environ["DATABASE_URL"] = SQLALCHEMY_DATABASE_URL
os.environ.setdefault("REALTIME_ENABLED", "false")
os.environ.setdefault("SERVICE_API_KEY", "test-service-key")
os.environ.setdefault("VAPID_PUBLIC_KEY", "BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U")

import threading  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from src.config import Settings  # noqa: E402
from src.database import Base, get_db  # noqa: E402
from src.exceptions import TransportError  # noqa: E402
from src.main import app  # noqa: E402
from src.models import User  # noqa: E402


class AuthHeaders(dict):
    """Dict subclass that also stores user_id and email."""

    def __init__(self, *args, user_id: int | None = None, email: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email


connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    """Create a user and return auth headers with user info."""
    email = "test@example.com"
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": "testpass123", "name": "Test User"},
    )
    assert response.status_code == 201
    data = response.json()
    token = data["access_token"]
    user_id = data["user"]["id"]

    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=user_id, email=email)


def _create_user(db, email: str | None, name: str) -> User:
    user = User(email=email, password_hash="not-a-real-hash", name=name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_user(db):
    """Factory inserting users directly (no password flow needed)."""

    def _make(email: str | None = "seller@example.com", name: str = "Ama Seller") -> User:
        return _create_user(db, email, name)

    return _make


@pytest.fixture
def user(make_user) -> User:
    return make_user()


@pytest.fixture
def push_settings() -> Settings:
    """Settings with push configured and a short delivery timeout."""
    return Settings(
        vapid_public_key="test-public-key",
        vapid_private_key="test-private-key",
        push_timeout_seconds=2.0,
        push_retry_attempts=0,
        realtime_enabled=False,
    )


class FakePushTransport:
    """Records deliveries; endpoints in ``failing`` raise like a gone subscription."""

    def __init__(self, failing: set[str] | None = None, transient: set[str] | None = None):
        self.failing = set(failing or ())
        self.transient = set(transient or ())
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def send(self, subscription_info: dict, payload: dict) -> None:
        endpoint = subscription_info["endpoint"]
        with self._lock:
            self.calls.append((endpoint, payload))
        if endpoint in self.failing:
            raise TransportError(
                "Push rejected: 410 Gone", endpoint=endpoint, status_code=410, permanent=True
            )
        if endpoint in self.transient:
            raise TransportError("Push service unreachable", endpoint=endpoint)

    @property
    def endpoints(self) -> list[str]:
        return [endpoint for endpoint, _ in self.calls]


class FakeEmailService:
    """Records emails; ``accept`` decides the provider's answer."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: list[dict] = []

    def send_email(self, to_email, subject, html_content, text_content=None) -> bool:
        self.sent.append(
            {"to": to_email, "subject": subject, "html": html_content, "text": text_content}
        )
        return self.accept


@pytest.fixture
def push_transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
def email_service() -> FakeEmailService:
    return FakeEmailService()
