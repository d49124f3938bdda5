"""Shared test fixtures for all test modules."""

import contextlib
import time
from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import database as db_module
from app.core.config import settings
from app.core.database import Base
from app.main import app
from app.models.generation import Generation, GenerationStatus
from app.models.shared import utc_now
from app.services.anthropic_client import AnthropicClient
from app.services.text_generator import TextGenerator, get_text_generator

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

ADMIN_TOKEN = "test-admin-token"
FINGERPRINT = "fp-test-0001"

SAMPLE_HTML = "<h1>Kawa</h1><p>Kawa to napój. Pijemy ją codziennie.</p>"


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct database operations in tests."""
    session = _TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def quota_settings(monkeypatch):
    """Pin quota and admin settings so a local .env cannot change test outcomes."""
    monkeypatch.setattr(settings, "DAILY_LIMIT", 3)
    monkeypatch.setattr(settings, "ALLOWED_LENGTHS", [1000, 2000, 3000])
    monkeypatch.setattr(settings, "ADMIN_TOKEN", ADMIN_TOKEN)


def provider_response(
    text_content: str = SAMPLE_HTML,
    input_tokens: int = 1200,
    output_tokens: int = 800,
    stop_reason: str = "end_turn",
) -> dict[str, Any]:
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text_content}],
        "stop_reason": stop_reason,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


def stream_events(
    chunks: list[str],
    input_tokens: int = 1200,
    output_tokens: int = 800,
    stop_reason: str = "end_turn",
) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = [
        {"type": "message_start", "message": {"usage": {"input_tokens": input_tokens}}},
        {"type": "content_block_start", "index": 0},
    ]
    events.extend(
        {"type": "content_block_delta", "delta": {"type": "text_delta", "text": chunk}}
        for chunk in chunks
    )
    events.append(
        {
            "type": "message_delta",
            "delta": {"stop_reason": stop_reason},
            "usage": {"output_tokens": output_tokens},
        }
    )
    events.append({"type": "message_stop"})
    return events


def make_stream(events: list[dict[str, Any]], error: Exception | None = None):
    """Build a replacement for ``AnthropicClient.stream_message``."""

    async def _stream(**kwargs: Any) -> AsyncIterator[dict[str, Any]]:
        for event in events:
            yield event
        if error is not None:
            raise error

    return _stream


@pytest.fixture
def provider():
    """A mocked provider client answering with ``SAMPLE_HTML``."""
    client = MagicMock(spec=AnthropicClient)
    client.create_message = AsyncMock(return_value=provider_response())
    client.stream_message = make_stream(stream_events(["<h1>Kawa</h1>", "<p>Kawa to napój.</p>"]))
    client.close = AsyncMock()
    return client


@pytest.fixture
def generator(provider):
    return TextGenerator(client=provider, model="test-model", temperature=0.5, timeout_seconds=5)


@pytest.fixture
def client(generator):
    """Test client with the provider swapped for the mocked one."""
    app.dependency_overrides[get_text_generator] = lambda: generator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def warsaw_tz(monkeypatch):
    """Run the test with the process local time zone set to Europe/Warsaw."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    with monkeypatch.context() as mp:
        mp.setenv("TZ", "Europe/Warsaw")
        time.tzset()
        try:
            if time.tzname[0] != "CET":
                pytest.skip("Europe/Warsaw zone data is not installed")
            yield
        finally:
            mp.undo()
            time.tzset()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}


def create_generation(db, **overrides: Any) -> Generation:
    """Insert a generation row directly, bypassing the service layer."""
    values: dict[str, Any] = {
        "fingerprint": FINGERPRINT,
        "ip": "10.0.0.1",
        "topic": "Parzenie kawy w domu",
        "length": 1000,
        "status": GenerationStatus.COMPLETED.value,
        "created_at": utc_now(),
    }
    values.update(overrides)
    generation = Generation(**values)
    db.add(generation)
    db.commit()
    db.refresh(generation)
    return generation
