"""Pytest fixtures for backend tests."""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from tests.fakes import FakeClient


def _set_default_env() -> None:
    os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
    os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
    os.environ.setdefault("TIMEZONE", "Europe/Madrid")


_set_default_env()

CENTER_ID = "center-1"
OWNER_ID = "owner-1"
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def client() -> TestClient:
    """Create a FastAPI test client."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def fake_db() -> FakeClient:
    """Empty in-memory store with one center owned by ``OWNER_ID``."""
    db = FakeClient()
    db.seed("centers", {"id": CENTER_ID, "owner_uid": OWNER_ID, "admins": []})
    return db


@pytest.fixture
def clock():
    """Fixed clock at mid-March 2024."""
    return lambda: NOW


@pytest.fixture(autouse=True)
def _reset_label_cache() -> Iterator[None]:
    from app.services import membership_service

    membership_service._label_cache.clear()
    yield
    membership_service._label_cache.clear()


@pytest.fixture
def api(client: TestClient, fake_db: FakeClient) -> Iterator[TestClient]:
    """Test client acting as the center owner against ``fake_db``."""
    from app.dependencies import get_authenticated_user, get_db_client
    from app.main import app

    app.dependency_overrides[get_db_client] = lambda: fake_db
    app.dependency_overrides[get_authenticated_user] = lambda: SimpleNamespace(id=OWNER_ID)
    yield client
    app.dependency_overrides.clear()
