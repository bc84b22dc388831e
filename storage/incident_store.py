"""
Key-value persistence for incident records and the current-incident pointer.

Records live under "incident:<number>"; the pointer lives under a reserved key
that can never collide with that prefix.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from typing import Any, Optional

logger = logging.getLogger("incident_api.store")

INCIDENT_KEY_PREFIX = "incident:"
CURRENT_INCIDENT_KEY = "_currentIncident"


def incident_key(incident_number: str) -> str:
    return f"{INCIDENT_KEY_PREFIX}{incident_number}"


class IncidentStore:
    """Interface. Values are JSON-compatible; get/get_all return copies."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, items: dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def get_all(self) -> dict[str, Any]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStore(IncidentStore):
    def __init__(self):
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._data.get(key))

    def set_many(self, items: dict[str, Any]) -> None:
        with self._lock:
            self._data.update(copy.deepcopy(items))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class JsonFileStore(IncidentStore):
    """Whole store as one JSON object on disk, rewritten atomically on every write."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            raw = f.read()
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"store file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".incidents-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug("store written path=%s keys=%d", self.path, len(data))

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read().get(key)

    def set_many(self, items: dict[str, Any]) -> None:
        with self._lock:
            data = self._read()
            data.update(items)
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            return self._read()

    def clear(self) -> None:
        with self._lock:
            self._write({})


def store_from_env() -> IncidentStore:
    """INCIDENT_STORE_PATH set -> JSON file store; otherwise in-memory."""
    path = os.environ.get("INCIDENT_STORE_PATH", "").strip()
    if path:
        logger.info("using json file store path=%s", path)
        return JsonFileStore(path)
    logger.info("using in-memory store (set INCIDENT_STORE_PATH to persist)")
    return MemoryStore()
