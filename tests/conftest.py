"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.models import Micropost, Relationship, User  # noqa: E402, F401
from app.services import auth as auth_module  # noqa: E402
from app.services import mailer as mailer_module  # noqa: E402
from app.services.auth import AuthService  # noqa: E402


class RecordingMailer:
    """Mailer that keeps every sent token for inspection."""

    def __init__(self) -> None:
        self.activations: list[tuple[str, str]] = []
        self.resets: list[tuple[str, str]] = []

    def send_activation_email(self, user: User, activation_token: str) -> None:
        self.activations.append((user.email, activation_token))

    def send_password_reset_email(self, user: User, reset_token: str) -> None:
        self.resets.append((user.email, reset_token))

    def last_activation_token(self, email: str) -> str:
        return [token for sent_to, token in self.activations if sent_to == email][-1]

    def last_reset_token(self, email: str) -> str:
        return [token for sent_to, token in self.resets if sent_to == email][-1]


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mailer")
def mailer_fixture():
    """Swap the application mailer for a recording one."""
    recording = RecordingMailer()
    mailer_module._mailer = recording
    auth_module._auth_service = None
    yield recording
    mailer_module._mailer = None
    auth_module._auth_service = None


@pytest.fixture(name="auth_service")
def auth_service_fixture(mailer: RecordingMailer) -> AuthService:
    """Auth service wired to the recording mailer."""
    return AuthService(mailer=mailer)


@pytest.fixture(name="client")
def client_fixture(db_session: Session, mailer: RecordingMailer):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, auth_service: AuthService):
    """Create a test user and return its data plus a session token."""
    from app.services.jwt import get_jwt_service

    user = auth_service.register(db_session, "Test User", "test@example.com", "password123")
    token = get_jwt_service().create_token(user.id)

    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "password": "password123",
        "activation_token": user.activation_token,
        "token": token,
    }


@pytest.fixture(name="other_user")
def other_user_fixture(db_session: Session, auth_service: AuthService):
    """A second user to follow and be followed by."""
    from app.services.jwt import get_jwt_service

    user = auth_service.register(db_session, "Other User", "other@example.com", "password456")
    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "token": get_jwt_service().create_token(user.id),
    }
