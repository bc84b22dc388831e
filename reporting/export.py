"""Incident table and CSV export. Reads stored values only; no parsing or derivation here."""

import csv
import io
from typing import Optional

from core.models import IncidentRecord, parse_iso

CSV_HEADER = ["Incident", "Occurrence", "Detection", "Resolve", "MTTD(ms)", "MTTR(ms)"]


def list_incidents(snapshot: dict) -> list[IncidentRecord]:
    """Valid records from a full store snapshot, sorted by incident number. The pointer and junk are skipped."""
    records = [IncidentRecord.from_dict(value) for value in (snapshot or {}).values()]
    return sorted((r for r in records if r is not None), key=lambda r: r.incident_number)


def _cell(value) -> str:
    return "" if value is None else str(value)


def incidents_to_csv(records: list[IncidentRecord]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in records:
        writer.writerow([
            r.incident_number,
            _cell(r.event_occurrence),
            _cell(r.event_detection),
            _cell(r.event_resolve),
            _cell(r.mttd),
            _cell(r.mttr),
        ])
    return buf.getvalue()


def format_duration(ms: Optional[int]) -> str:
    if not ms:
        return "-"
    sec = int(ms) // 1000
    minutes = sec // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {sec % 60}s"
    return f"{sec}s"


def format_mdy(iso: Optional[str]) -> str:
    """Local M/D/YY H:MM, or "-" when absent or unreadable."""
    ts = parse_iso(iso)
    if ts is None:
        return "-"
    local = ts.astimezone()
    return f"{local.month}/{local.day}/{local.strftime('%y')} {local.hour}:{local.minute:02d}"


def incident_rows(records: list[IncidentRecord]) -> list[dict]:
    """Display rows for the incident table."""
    return [
        {
            "incident": r.incident_number,
            "occurrence": format_mdy(r.event_occurrence),
            "detection": format_mdy(r.event_detection),
            "resolve": format_mdy(r.event_resolve),
            "mttd": format_duration(r.mttd),
            "mttr": format_duration(r.mttr),
        }
        for r in records
    ]
