import os

# Settings require DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from unittest.mock import patch

from app.ai import mock as mock_ai
from app.ai.stream_events import StreamFinish, TextDelta
from app.core.rate_limit import SlidingWindowRateLimiter, get_rate_limiter
from app.db.base import Base
from app.db.session import get_db, get_session_factory
from app.main import app
from app.models.tenant import Tenant
from app.seed.seed_data import seed_db
from sqlalchemy import event


# Use SQLite file database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)

@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Set SQLite pragmas."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")

# Monkey-patch JSONB to work with SQLite
import sqlalchemy.dialects.sqlite.base as sqlite_base

def visit_JSONB(self, type_, **kw):
    return "JSON"
sqlite_base.SQLiteTypeCompiler.visit_JSONB = visit_JSONB

# Monkey-patch postgresql.UUID to a text column. SQLiteTypeCompiler inherits a
# visit_UUID that emits "UUID", which SQLite gives NUMERIC affinity: an all-digit
# hex id would come back as a number.
def visit_UUID(self, type_, **kw):
    return "CHAR(36)"
sqlite_base.SQLiteTypeCompiler.visit_UUID = visit_UUID

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def rate_limiter():
    """Fresh limiter per test; every TestClient request shares one caller identity."""
    return SlidingWindowRateLimiter(window_seconds=60, max_requests=20)


@pytest.fixture(scope="function")
def client(db_session, rate_limiter):
    """Create a test client with database, session factory and limiter overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def seeded_db(db_session):
    """Create a database session with the demo tenant."""
    seed_db(db_session)
    return db_session


@pytest.fixture
def make_tenant(db_session):
    """Factory for tenants; defaults to an active localhost tenant on a fake provider."""
    def _make(**overrides):
        values = {
            "name": "Test Cafe",
            "domain": "localhost",
            "active": True,
            "plan": "starter",
            "message_limit": 1000,
            "messages_used": 0,
            "ai_model": "fake/test-model",
            "bot_name": "Bean",
            "welcome_message": "Hi there",
            "system_prompt": "You are a helpful cafe assistant.",
        }
        values.update(overrides)
        tenant = Tenant(**values)
        db_session.add(tenant)
        db_session.commit()
        db_session.refresh(tenant)
        return tenant
    return _make


@pytest.fixture
def fake_provider():
    """
    Registers a "fake" provider for the duration of the test. Set `.events` to the
    items to stream (TextDelta/StreamFinish, or an Exception to raise at that point).
    Each call's arguments are recorded in `.calls`.
    """
    class FakeProvider:
        def __init__(self):
            self.events = [
                TextDelta("Hello"),
                TextDelta(" world"),
                StreamFinish("stop", prompt_tokens=12, completion_tokens=3),
            ]
            self.calls = []

        async def stream(self, model, system_prompt, messages, temperature, max_output_tokens):
            self.calls.append(
                {
                    "model": model,
                    "system_prompt": system_prompt,
                    "messages": messages,
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                }
            )
            for item in self.events:
                if isinstance(item, Exception):
                    raise item
                yield item

    provider = FakeProvider()
    with patch.dict("app.ai.providers._registry", {"fake": provider.stream}):
        yield provider


@pytest.fixture
def fast_mock_ai(monkeypatch):
    """Mock replies without the simulated typing delay."""
    monkeypatch.setattr(mock_ai, "TOKEN_DELAY_MIN", 0)
    monkeypatch.setattr(mock_ai, "TOKEN_DELAY_JITTER", 0)


@pytest.fixture
def session_factory():
    """Session factory bound to the test database (what background persistence uses)."""
    return TestingSessionLocal
