"""Tests for EventRouter: current incident, timestamp capture, ignored events, storage failures, same-key serialization."""

import threading
from datetime import datetime

import pytest

from core.engine import duration_ms
from core.models import StorageFailure, to_iso
from core.router import EventRouter, KeyLocks
from storage.incident_store import CURRENT_INCIDENT_KEY, MemoryStore, incident_key


class BrokenStore(MemoryStore):
    def set_many(self, items):
        raise OSError("disk full")


class TestSetIncident:
    def test_creates_record_and_pointer(self, router, memory_store):
        result = router.handle("set_incident", "  INC-42 ")
        assert result.status == "saved"
        assert result.incident_number == "INC-42"
        assert router.current_incident == "INC-42"
        assert memory_store.get(incident_key("INC-42")) == {"incidentNumber": "INC-42"}
        assert memory_store.get(CURRENT_INCIDENT_KEY) == "INC-42"

    def test_keeps_existing_fields(self, router, memory_store):
        memory_store.set(incident_key("INC-42"), {"incidentNumber": "INC-42", "eventOccurrence": "2025-10-01T09:00:00.000Z"})
        router.handle("set_incident", "INC-42")
        assert memory_store.get(incident_key("INC-42"))["eventOccurrence"] == "2025-10-01T09:00:00.000Z"

    def test_empty_is_ignored(self, router, memory_store):
        result = router.handle("set_incident", "   ")
        assert result.status == "ignored"
        assert result.reason == "empty_selection"
        assert router.current_incident is None
        assert memory_store.get_all() == {}

    def test_switching_incidents(self, router):
        router.handle("set_incident", "A")
        router.handle("set_incident", "B")
        assert router.current_incident == "B"


class TestTimestampCapture:
    def test_end_to_end_mttd(self, router, memory_store):
        router.handle("set_incident", "INC-42")
        router.handle("set_occurrence", "10/1/2025 09:00")
        result = router.handle("set_detection", "10/1/2025 09:15")
        record = memory_store.get(incident_key("INC-42"))
        assert result.status == "saved"
        assert result.record == record
        assert record["mttd"] == 900000
        assert "mttr" not in record

    def test_stored_as_utc_iso(self, router, memory_store):
        router.handle("set_incident", "INC-42")
        router.handle("set_occurrence", "10/30/2025 12:11 PM")
        record = memory_store.get(incident_key("INC-42"))
        assert record["eventOccurrence"] == to_iso(datetime(2025, 10, 30, 12, 11).astimezone())
        assert record["eventOccurrence"].endswith("Z")

    def test_mixed_formats_and_resolve(self, router, memory_store):
        router.handle("set_incident", "INC-7")
        router.handle("set_resolve", "Oct 30, 2025 2:00 PM")
        router.handle("set_occurrence", "10/30/2025 12:00 PM")
        router.handle("set_detection", "Thu 10/30/2025 12:30 PM")
        record = memory_store.get(incident_key("INC-7"))
        assert record["mttd"] == 30 * 60 * 1000
        assert record["mttr"] == 90 * 60 * 1000

    def test_no_current_incident(self, router, memory_store):
        result = router.handle("set_occurrence", "10/1/2025 09:00")
        assert result.status == "ignored"
        assert result.reason == "no_current_incident"
        assert memory_store.get_all() == {}

    def test_unparsable_date_leaves_record_unchanged(self, router, memory_store):
        router.handle("set_incident", "INC-42")
        router.handle("set_occurrence", "10/1/2025 09:00")
        before = memory_store.get(incident_key("INC-42"))
        result = router.handle("set_detection", "random words no numbers")
        assert result.status == "ignored"
        assert result.reason == "unparsable_date"
        assert result.incident_number == "INC-42"
        assert memory_store.get(incident_key("INC-42")) == before

    def test_empty_selection(self, router):
        router.handle("set_incident", "INC-42")
        assert router.handle("set_resolve", "").reason == "empty_selection"

    def test_date_past_utc_range_is_unparsable(self, router, memory_store):
        router.handle("set_incident", "INC1")
        result = router.handle("set_occurrence", "9999-12-31T23:00:00-05:00")
        assert result.status == "ignored"
        assert result.reason == "unparsable_date"
        assert memory_store.get(incident_key("INC1")) == {"incidentNumber": "INC1"}

    def test_unknown_action(self, router):
        result = router.handle("set_banana", "10/1/2025")
        assert result.status == "ignored"
        assert result.reason == "unknown_action"

    def test_recreates_deleted_record(self, router, memory_store):
        router.handle("set_incident", "INC-42")
        memory_store.delete(incident_key("INC-42"))
        router.handle("set_occurrence", "10/1/2025 09:00")
        assert memory_store.get(incident_key("INC-42"))["incidentNumber"] == "INC-42"


class TestPointerRestore:
    def test_router_restores_current_incident(self, memory_store):
        EventRouter(memory_store).handle("set_incident", "INC-9")
        restored = EventRouter(memory_store)
        assert restored.current_incident == "INC-9"
        assert restored.handle("set_occurrence", "10/1/2025 09:00").status == "saved"


class TestStorageFailure:
    def test_write_failure_raises(self):
        router = EventRouter(BrokenStore())
        with pytest.raises(StorageFailure):
            router.handle("set_incident", "INC-1")
        assert router.current_incident is None

    def test_read_failure_raises(self, router, memory_store, monkeypatch):
        router.handle("set_incident", "INC-1")

        def boom(key):
            raise OSError("unreadable")

        monkeypatch.setattr(memory_store, "get", boom)
        with pytest.raises(StorageFailure):
            router.handle("set_occurrence", "10/1/2025 09:00")

    def test_soft_failures_do_not_raise(self):
        router = EventRouter(BrokenStore())
        assert router.handle("set_occurrence", "10/1/2025 09:00").reason == "no_current_incident"


class TestSameKeySerialization:
    def test_released_keys_are_dropped(self):
        locks = KeyLocks()
        with locks.hold("incident:A"):
            with locks.hold("incident:B"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_same_key_blocks_until_released(self):
        locks = KeyLocks()
        entered = threading.Event()

        def worker():
            with locks.hold("incident:A"):
                entered.set()

        with locks.hold("incident:A"):
            t = threading.Thread(target=worker)
            t.start()
            assert not entered.wait(0.1)
        t.join(timeout=5)
        assert entered.is_set()
        assert len(locks) == 0

    def test_router_leaves_no_locks_behind(self, router):
        for n in range(5):
            router.handle("set_incident", f"INC-{n}")
            router.handle("set_occurrence", "10/1/2025 09:00")
        assert len(router.locks) == 0

    def test_concurrent_captures_keep_both_fields(self, memory_store):
        """Slow reads widen the race window; serialized writes must not lose either update."""
        router = EventRouter(memory_store)
        router.handle("set_incident", "INC-42")
        original_get = memory_store.get
        barrier = threading.Barrier(2, timeout=5)

        def slow_get(key):
            value = original_get(key)
            if key == incident_key("INC-42"):
                try:
                    barrier.wait(timeout=0.2)
                except threading.BrokenBarrierError:
                    pass
            return value

        memory_store.get = slow_get
        threads = [
            threading.Thread(target=router.handle, args=("set_occurrence", "10/1/2025 09:00")),
            threading.Thread(target=router.handle, args=("set_detection", "10/1/2025 09:15")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        record = original_get(incident_key("INC-42"))
        assert "eventOccurrence" in record
        assert "eventDetection" in record
        assert record["mttd"] == duration_ms(record["eventOccurrence"], record["eventDetection"]) == 900000
