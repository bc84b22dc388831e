"""
Seed demo incidents by POSTing selections to the /selection API, then print the CSV export.

Run with the API already running (python run_api.py). Optionally set INCIDENT_API_URL in env.
Selections mimic what people copy from ticketing tools and log viewers, in mixed formats.
Usage: python seed_demo_incidents.py
"""

import os

import httpx

INCIDENT_API_URL = (os.environ.get("INCIDENT_API_URL") or "http://localhost:8000").rstrip("/")

# (action, selected text) in the order a user would click them
DEMO_SELECTIONS = [
    # INC-1001: all three timestamps, US numeric format with weekday prefix
    ("set_incident", "INC-1001"),
    ("set_occurrence", "Thu 10/30/2025 12:11 PM"),
    ("set_detection", "Thu 10/30/2025 12:26 PM"),
    ("set_resolve", "Thu 10/30/2025 2:05 PM"),
    # INC-1002: month-name and ISO formats, resolve captured before detection
    ("set_incident", "INC-1002"),
    ("set_occurrence", "Reported: Oct 31, 2025 at 08:02 AM"),
    ("set_resolve", "2025-10-31T11:45:00Z"),
    ("set_detection", "October 31, 2025 9:10 AM"),
    # INC-1003: only occurrence and detection so far
    ("set_incident", "INC-1003"),
    ("set_occurrence", "11-02-2025 23:40"),
    ("set_detection", "Sun, 02 Nov 2025 23:58:00 -0000"),
    # Not a date; ignored with a warning
    ("set_resolve", "see ticket for details"),
]


def main():
    print(f"Seeding demo incidents via {INCIDENT_API_URL}/selection")
    client = httpx.Client(timeout=30.0)
    try:
        for action, text in DEMO_SELECTIONS:
            r = client.post(f"{INCIDENT_API_URL}/selection", json={"action": action, "text": text})
            r.raise_for_status()
            data = r.json()
            print(f"  {action:<15} {text!r:<45} -> {data['status']}{' (' + data['reason'] + ')' if data.get('reason') else ''}")
        r = client.get(f"{INCIDENT_API_URL}/incidents/export.csv")
        r.raise_for_status()
        print()
        print(r.text)
    except httpx.HTTPError as e:
        print(f"Request failed: {e}")
        raise SystemExit(1)
    finally:
        client.close()


if __name__ == "__main__":
    main()
