"""
Selection event routing: (action, selected text) -> current-incident update or timestamp capture.

Each capture is one read-modify-write on "incident:<number>", serialized per key so two
rapid captures on the same incident cannot overwrite each other's merge base.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional

from core.engine import merge_record
from core.models import (
    ACTION_FIELDS,
    SET_INCIDENT,
    EmptySelection,
    HandleResult,
    HandlingError,
    NoCurrentIncident,
    StorageFailure,
    UnknownAction,
    UnparsableDate,
    to_iso,
)
from extractors.date_extractor import extract_timestamp_with_matcher
from storage.incident_store import CURRENT_INCIDENT_KEY, IncidentStore, incident_key

logger = logging.getLogger("incident_api.router")


class KeyLocks:
    """Per-key locks, kept only while some caller holds or waits on the key."""

    def __init__(self):
        self._locks: dict[str, list] = {}  # key -> [lock, holders + waiters]
        self._guard = threading.Lock()

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class EventRouter:
    def __init__(self, store: IncidentStore):
        self.store = store
        self.locks = KeyLocks()
        self.current_incident: Optional[str] = None
        try:
            pointer = store.get(CURRENT_INCIDENT_KEY)
        except Exception as e:
            logger.error("could not load current incident pointer: %s", e)
            pointer = None
        if isinstance(pointer, str) and pointer:
            self.current_incident = pointer
            logger.info("current incident restored incident=%s", pointer)

    def handle(self, action: str, selection_text: Optional[str]) -> HandleResult:
        """
        Route one selection event. Soft failures (empty selection, no current incident,
        unparsable date, unknown action) come back as an "ignored" result;
        StorageFailure is raised.
        """
        try:
            if action == SET_INCIDENT:
                return self._set_incident(selection_text)
            if action in ACTION_FIELDS:
                return self._save_timestamp(ACTION_FIELDS[action], selection_text)
            raise UnknownAction(f"unknown action {action!r}")
        except StorageFailure:
            raise
        except EmptySelection as e:
            logger.debug("selection ignored: %s", e)
            return HandleResult(status="ignored", reason=e.code)
        except HandlingError as e:
            logger.warning("selection ignored action=%s reason=%s: %s", action, e.code, e)
            return HandleResult(status="ignored", reason=e.code, incident_number=self.current_incident)

    def _set_incident(self, selection_text: Optional[str]) -> HandleResult:
        number = (selection_text or "").strip()
        if not number:
            raise EmptySelection("empty incident number")
        key = incident_key(number)
        with self.locks.hold(key):
            existing = self._load(key)
            record = merge_record(existing, {"incidentNumber": number})
            self._save({key: record, CURRENT_INCIDENT_KEY: number})
            self.current_incident = number
        logger.info("current incident set incident=%s created=%s", number, existing is None)
        return HandleResult(status="saved", incident_number=number, record=record)

    def _save_timestamp(self, field: str, selection_text: Optional[str]) -> HandleResult:
        text = (selection_text or "").strip()
        if not text:
            raise EmptySelection("empty selection")
        number = self.current_incident
        if not number:
            raise NoCurrentIncident("no current incident set; save an incident number first")
        found = extract_timestamp_with_matcher(text)
        if found is None:
            raise UnparsableDate(f"could not parse a date from {text!r}")
        ts, matcher = found
        key = incident_key(number)
        with self.locks.hold(key):
            existing = self._load(key)
            record = merge_record(existing, {"incidentNumber": number, field: to_iso(ts)})
            self._save({key: record})
        logger.info("timestamp saved incident=%s field=%s value=%s matcher=%s mttd=%s mttr=%s",
                    number, field, record[field], matcher, record.get("mttd"), record.get("mttr"))
        return HandleResult(status="saved", incident_number=number, record=record)

    def _load(self, key: str) -> Optional[dict]:
        try:
            value = self.store.get(key)
        except Exception as e:
            logger.error("store read failed key=%s: %s", key, e)
            raise StorageFailure(f"read failed for {key}") from e
        return value if isinstance(value, dict) else None

    def _save(self, items: dict) -> None:
        try:
            self.store.set_many(items)
        except Exception as e:
            logger.error("store write failed keys=%s: %s", list(items), e)
            raise StorageFailure(f"write failed for {', '.join(items)}") from e
