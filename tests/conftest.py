"""
Test fixtures for wts-forms tests.

Provides storage/queue fixtures, an in-memory database engine and a
TestClient wired to pipelines whose remote write is a mock.
"""

import pytest
from typing import Generator
from unittest.mock import AsyncMock
from sqlmodel import SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from wts_forms.core.circuit_breaker import set_notification_callback
from wts_forms.core.config import Settings
from wts_forms.core.storage import MemoryStorage
from wts_forms.services.forms import FORMS
from wts_forms.services.pipelines import SubmissionPipelines, build_pipeline
from wts_forms.services.submission_queue import QUEUE_KEY, SubmissionQueue

import wts_forms.models  # noqa: F401  registers storage_item

# Use in-memory SQLite for unit tests (fast, isolated)
TEST_DATABASE_URL = "sqlite:///:memory:"


def make_settings(**overrides) -> Settings:
    """Settings with zero backoff so retry tests do not sleep."""
    values = {
        "RETRY_BASE_DELAY_SECONDS": 0.0,
        "RETRY_MAX_JITTER_SECONDS": 0.0,
        "ADMIN_API_KEY": "test-admin-key",
        "QUEUE_STORAGE_BACKEND": "memory",
    }
    values.update(overrides)
    return Settings(**values)


def make_pipelines(storage, remote_write, **overrides) -> SubmissionPipelines:
    settings = make_settings(**overrides)
    return SubmissionPipelines(
        {
            kind: build_pipeline(definition, settings, storage, remote_write=remote_write)
            for kind, definition in FORMS.items()
        }
    )


@pytest.fixture(autouse=True)
def clear_notification_callback():
    """Breaker notifications are process-wide; never leak them between tests."""
    set_notification_callback(None)
    yield
    set_notification_callback(None)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def queue(memory_storage) -> SubmissionQueue:
    return SubmissionQueue(memory_storage, storage_key=QUEUE_KEY)


@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def remote_write() -> AsyncMock:
    """Document store write; succeeds unless a test sets side_effect."""
    return AsyncMock(return_value=None)


@pytest.fixture
def pipelines(memory_storage, remote_write) -> SubmissionPipelines:
    return make_pipelines(memory_storage, remote_write)


@pytest.fixture
def client(pipelines, monkeypatch) -> Generator:
    """TestClient without lifespan: pipelines come from the fixture, not startup."""
    from fastapi.testclient import TestClient

    from wts_forms.api import deps
    from wts_forms.core.config import settings
    from wts_forms.main import app

    monkeypatch.setattr(settings, "ADMIN_API_KEY", "test-admin-key")
    app.dependency_overrides[deps.get_pipelines] = lambda: pipelines
    yield TestClient(app)
    app.dependency_overrides.clear()
