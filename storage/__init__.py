"""Incident persistence: in-memory and JSON-file key-value stores."""

from storage.incident_store import (
    CURRENT_INCIDENT_KEY,
    IncidentStore,
    JsonFileStore,
    MemoryStore,
    incident_key,
    store_from_env,
)

__all__ = [
    "CURRENT_INCIDENT_KEY",
    "IncidentStore",
    "JsonFileStore",
    "MemoryStore",
    "incident_key",
    "store_from_env",
]
