"""Incident record model, action kinds, and the handling error taxonomy."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

SET_INCIDENT = "set_incident"
SET_OCCURRENCE = "set_occurrence"
SET_DETECTION = "set_detection"
SET_RESOLVE = "set_resolve"

TIMESTAMP_FIELDS = ("eventOccurrence", "eventDetection", "eventResolve")
DERIVED_FIELDS = ("mttd", "mttr")

# Timestamp actions -> record field they fill
ACTION_FIELDS = {
    SET_OCCURRENCE: "eventOccurrence",
    SET_DETECTION: "eventDetection",
    SET_RESOLVE: "eventResolve",
}
ACTIONS = (SET_INCIDENT,) + tuple(ACTION_FIELDS)


def to_iso(ts: datetime) -> str:
    """Persisted timestamp form: UTC, millisecond precision, trailing Z."""
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value) -> Optional[datetime]:
    """Read a persisted timestamp back; None when absent or corrupt."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.astimezone()
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class IncidentRecord:
    incident_number: str
    event_occurrence: Optional[str] = None  # ISO-8601, UTC
    event_detection: Optional[str] = None
    event_resolve: Optional[str] = None
    mttd: Optional[int] = None  # ms, derived
    mttr: Optional[int] = None  # ms, derived

    def to_dict(self):
        d = {"incidentNumber": self.incident_number}
        for key, value in (
            ("eventOccurrence", self.event_occurrence),
            ("eventDetection", self.event_detection),
            ("eventResolve", self.event_resolve),
            ("mttd", self.mttd),
            ("mttr", self.mttr),
        ):
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, data) -> Optional["IncidentRecord"]:
        """Build from the persisted shape. Anything without an incident number is not a record."""
        if not isinstance(data, dict):
            return None
        number = data.get("incidentNumber")
        if not isinstance(number, str) or not number.strip():
            return None
        return cls(
            incident_number=number,
            event_occurrence=data.get("eventOccurrence"),
            event_detection=data.get("eventDetection"),
            event_resolve=data.get("eventResolve"),
            mttd=data.get("mttd"),
            mttr=data.get("mttr"),
        )


class HandlingError(Exception):
    """Base for everything that can stop a selection from being recorded."""
    code = "handling_error"


class EmptySelection(HandlingError):
    code = "empty_selection"


class NoCurrentIncident(HandlingError):
    code = "no_current_incident"


class UnparsableDate(HandlingError):
    code = "unparsable_date"


class UnknownAction(HandlingError):
    code = "unknown_action"


class StorageFailure(HandlingError):
    """Persistence failed. The only handling error that is raised to the caller."""
    code = "storage_failure"


@dataclass
class HandleResult:
    status: str  # "saved" | "ignored"
    reason: Optional[str] = None
    incident_number: Optional[str] = None
    record: Optional[dict] = None

    def to_dict(self):
        return {
            "status": self.status,
            "reason": self.reason,
            "incident_number": self.incident_number,
            "record": self.record,
        }
