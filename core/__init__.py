"""Core incident record model, merge/derive logic, and selection event routing."""

from core.models import IncidentRecord, HandleResult, HandlingError, StorageFailure
from core.engine import merge_record, duration_ms
from core.router import EventRouter

__all__ = [
    "IncidentRecord",
    "HandleResult",
    "HandlingError",
    "StorageFailure",
    "merge_record",
    "duration_ms",
    "EventRouter",
]
