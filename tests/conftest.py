"""Pytest fixtures for incident timestamp tests."""

import pytest

from core.router import EventRouter
from storage.incident_store import MemoryStore


@pytest.fixture
def memory_store():
    """Fresh in-memory store."""
    return MemoryStore()


@pytest.fixture
def router(memory_store):
    """Router over an empty in-memory store (no current incident)."""
    return EventRouter(memory_store)


@pytest.fixture
def base_record():
    """Record with an incident number and an occurrence time."""
    return {"incidentNumber": "INC1", "eventOccurrence": "2025-10-01T09:00:00.000Z"}


@pytest.fixture
def timestamp_updates():
    """The three timestamp field updates for one incident."""
    return [
        {"eventOccurrence": "2025-10-01T09:00:00.000Z"},
        {"eventDetection": "2025-10-01T09:15:00.000Z"},
        {"eventResolve": "2025-10-01T11:00:00.000Z"},
    ]


@pytest.fixture
def app_client(monkeypatch):
    """FastAPI TestClient over a fresh in-memory store and router."""
    from fastapi.testclient import TestClient
    import api.main as main_module
    store = MemoryStore()
    monkeypatch.setattr(main_module, "store", store)
    monkeypatch.setattr(main_module, "router", EventRouter(store))
    return TestClient(main_module.app)
