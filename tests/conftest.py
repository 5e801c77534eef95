"""Pytest configuration and shared fixtures."""
import os
from datetime import date, datetime, timedelta
from typing import Generator
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"  # Set to test to avoid production validation
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.pop("REDIS_PASSWORD", None)
# JWT secret: 32+ characters with high entropy
os.environ["JWT_SECRET_KEY"] = "Xq7vR2mZp9LwT4nB8cYh3KfJ6sGd1Ue5"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CORS_ORIGINS"] = "http://localhost:3000"
os.environ["REQUIRE_AUTH"] = "true"
os.environ["AUTH_MODE"] = "store"
os.environ.pop("SENTRY_DSN", None)


class FakeRedis:
    """In-memory stand-in for the session store calls (setex/get/delete/ping)."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def ping(self):
        return True

    def close(self):
        pass

    def flushdb(self):
        self.data.clear()
        self.ttls.clear()


_fake_redis = FakeRedis()

# Patch get_redis_client before any imports that bind it by name
_redis_patcher = patch("app.config.redis.get_redis_client", return_value=_fake_redis)
_redis_patcher.start()

# Now import after environment is set and Redis is patched
from fastapi.testclient import TestClient

from app.config.database import Base, get_db, get_all_models
from app.main import app
from app.models.core import Profile
from app.models.enums import AppRole
from app.services.auth.identity import StoreIdentityProvider
from app.services.auth.permissions import FULL_REGISTRY
from app.services.auth.session import SessionContext
from app.services.claims.mapping import profile_to_user
from app.services.claims.repository import ClaimRepository
from app.services.workflow.engine import ClaimWorkflowEngine
from app.services.workflow.expertise import ExpertiseManager

from tests.factories import ClaimFactory, ProfileFactory

TEST_PASSWORD = "Sinistre-2024!"


class FrozenClock:
    """Deterministic clock; tests advance it explicitly."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture(autouse=True)
def clear_sessions():
    """Drop recorded sessions and workspaces so tests do not share logins."""
    _fake_redis.flushdb()
    app.state.workspaces.clear()
    yield
    _fake_redis.flushdb()
    app.state.workspaces.clear()


# Test database setup
@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """Create a test database session on a fresh in-memory database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    get_all_models()
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_db: Session) -> Generator[Session, None, None]:
    """Provide a database session for tests."""
    ProfileFactory._meta.sqlalchemy_session = test_db
    ClaimFactory._meta.sqlalchemy_session = test_db

    yield test_db
    test_db.rollback()


@pytest.fixture(scope="function")
def override_get_db(db_session: Session):
    """Override the get_db dependency."""
    def _get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close in tests

    return _get_db


@pytest.fixture(scope="function")
def client(override_get_db) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    app.dependency_overrides[get_db] = override_get_db
    # Set raise_server_exceptions=False so that 500 errors return responses instead of raising
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return _fake_redis


# Workflow services

@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 4, 9, 0, 0))


@pytest.fixture
def repository(db_session: Session, clock: FrozenClock) -> ClaimRepository:
    return ClaimRepository(db_session, clock=clock)


@pytest.fixture
def engine(repository: ClaimRepository) -> ClaimWorkflowEngine:
    return ClaimWorkflowEngine(repository)


@pytest.fixture
def expertise_manager(repository: ClaimRepository) -> ExpertiseManager:
    return ExpertiseManager(repository)


def session_for(profile: Profile, registry=FULL_REGISTRY) -> SessionContext:
    return SessionContext(profile_to_user(profile), registry, session_id=f"sid-{profile.id}")


@pytest.fixture
def make_actor(db_session: Session):
    """Create a profile holding ``role`` and return (profile, session context)."""
    def _make(role: AppRole = AppRole.ASSURE, registry=FULL_REGISTRY):
        profile = ProfileFactory(role=role)
        return profile, session_for(profile, registry)

    return _make


@pytest.fixture
def manager_actor(make_actor):
    return make_actor(AppRole.GESTIONNAIRE)


@pytest.fixture
def insured_actor(make_actor):
    return make_actor(AppRole.ASSURE)


@pytest.fixture
def claim_draft() -> dict:
    """Valid declaration payload (dates relative to the frozen clock)."""
    return {
        "policy_number": "POL-AUTO-12345",
        "type": "auto",
        "incident_date": date(2024, 3, 1),
        "declaration_date": date(2024, 3, 3),
        "location": "Conakry, Kaloum",
        "description": "Collision au carrefour de Kaloum, pare-choc avant endommagé",
        "estimated_amount": "1500000.00",
    }


# API helpers

@pytest.fixture
def register_user(db_session: Session):
    """Register a store user with a password and return its profile."""
    def _register(email: str, role: AppRole = AppRole.ASSURE, name: str = "Utilisateur Test"):
        StoreIdentityProvider(db_session).register(email, name, TEST_PASSWORD, roles=(role,))
        db_session.commit()
        return db_session.query(Profile).filter(Profile.email == email).one()

    return _register


@pytest.fixture
def login(client: TestClient):
    """Log in through the API and return the Authorization header."""
    def _login(email: str, password: str = TEST_PASSWORD) -> dict:
        response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
