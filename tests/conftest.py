import os

# Settings are read at import time, so the environment must be in place first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SERVICE_AUTH_TOKEN"] = "test-service-secret"
os.environ["NOTIFY_BATCH_CONCURRENCY"] = "1"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from uuid import uuid4

from app.main import app
from app.db import Base, get_db, get_session_factory
from app import models as _models  # noqa: F401  (registers tables)
from app.models.device_token import DeviceToken, DevicePlatform
from app.services.push_transport import SendOutcome, get_push_transport

# Use SQLite in-memory for test DB
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
# For in-memory SQLite we must use a StaticPool so multiple connections share the
# same in-memory database during the test run. Otherwise each connection gets
# an isolated empty in-memory DB which breaks tests that use separate sessions
# (e.g. TestClient requests vs test DB setup).
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SERVICE_SECRET = "test-service-secret"


# Dependency override
def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class FakeTransport:
    """Stands in for FCM; per-token failures are configured by error code."""

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.error = None

    def available(self):
        return True

    def send_multicast(self, tokens, message):
        self.calls.append((list(tokens), message))
        if self.error:
            raise self.error
        return [
            SendOutcome(token=t, success=False, error_code=self.failures[t])
            if t in self.failures
            else SendOutcome(token=t, success=True, message_id=f"msg-{i}")
            for i, t in enumerate(tokens)
        ]


@pytest.fixture(autouse=True)
def setup_test_db():
    # recreate schema for each test to ensure isolation
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def client(fake_transport):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_push_transport] = lambda: fake_transport
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    # use the testing session factory bound to the in-memory SQLite engine
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def user_id():
    return f"uid-{uuid4().hex[:8]}"


@pytest.fixture
def service_headers():
    """Headers for a gateway call, optionally asserting a user id."""
    def _make(user_id=None):
        headers = {"X-Service-Auth": SERVICE_SECRET, "X-Service-Name": "api-gateway"}
        if user_id:
            headers["X-User-Id"] = user_id
        return headers
    return _make


@pytest.fixture
def add_token(db_session):
    """Persist a device token directly (committed so request sessions see it)."""
    def _add(user_id, token=None, platform=DevicePlatform.android, device_id=None, last_active=None):
        record = DeviceToken(
            user_id=user_id,
            token=token or f"tok-{uuid4().hex}",
            platform=platform,
            device_id=device_id,
        )
        if last_active is not None:
            record.last_active = last_active
        db_session.add(record)
        db_session.commit()
        return record
    return _add
