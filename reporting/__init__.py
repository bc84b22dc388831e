"""Presentation: incident listing, display formatting, CSV export."""

from reporting.export import list_incidents, incidents_to_csv, incident_rows, format_duration, format_mdy

__all__ = ["list_incidents", "incidents_to_csv", "incident_rows", "format_duration", "format_mdy"]
