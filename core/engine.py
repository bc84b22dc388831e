"""Incident record merge: shallow-merge field updates, then re-derive MTTD/MTTR.
Derived metrics are recomputed from scratch on every merge, so arrival order never matters.
"""

import logging
from datetime import datetime
from typing import Optional

from core.models import DERIVED_FIELDS, TIMESTAMP_FIELDS, parse_iso, to_iso

logger = logging.getLogger("incident_api.engine")


def duration_ms(start, end) -> Optional[int]:
    """Signed end - start in whole milliseconds; None if either side does not parse."""
    a = parse_iso(start)
    b = parse_iso(end)
    if a is None or b is None:
        return None
    delta = b - a
    return (delta.days * 86_400_000) + (delta.seconds * 1000) + (delta.microseconds // 1000)


def _normalize_change(key: str, value):
    if key in TIMESTAMP_FIELDS and isinstance(value, datetime):
        return to_iso(value)
    return value


def merge_record(existing: Optional[dict], changes: dict) -> dict:
    """
    Merge changes over existing (new values win per key) and recompute derived fields.
    incidentNumber is first-write-wins; mttd/mttr in changes are ignored.
    """
    merged = dict(existing or {})
    for key, value in (changes or {}).items():
        if key in DERIVED_FIELDS:
            continue
        if key == "incidentNumber":
            if not merged.get("incidentNumber") and value:
                merged["incidentNumber"] = value
            continue
        merged[key] = _normalize_change(key, value)

    merged.pop("mttd", None)
    merged.pop("mttr", None)
    if merged.get("eventOccurrence") and merged.get("eventDetection"):
        mttd = duration_ms(merged["eventOccurrence"], merged["eventDetection"])
        if mttd is not None:
            merged["mttd"] = mttd
    if merged.get("eventDetection") and merged.get("eventResolve"):
        mttr = duration_ms(merged["eventDetection"], merged["eventResolve"])
        if mttr is not None:
            merged["mttr"] = mttr
    logger.debug("merged record incident=%s mttd=%s mttr=%s",
                 merged.get("incidentNumber"), merged.get("mttd"), merged.get("mttr"))
    return merged
