"""
FastAPI backend: receive page selections (incident number / occurrence / detection / resolve),
serve the incident table, and export it as CSV.
"""

import logging
import os
from contextlib import asynccontextmanager

from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel


from dotenv import load_dotenv

from core.models import ACTIONS, StorageFailure
from core.router import EventRouter
from reporting.export import incident_rows, incidents_to_csv, list_incidents
from storage.incident_store import incident_key, store_from_env

load_dotenv(override=True)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    LOG_LEVEL = "INFO"

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("incident_api")

# -----------------------------------------------------------------------------
# Store + router (one current incident per process)
# -----------------------------------------------------------------------------
store = store_from_env()
router = EventRouter(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("incident api started current_incident=%s", router.current_incident)
    yield


app = FastAPI(title="Incident Timestamp API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------------------------------------------------------
# Request/response models
# -----------------------------------------------------------------------------
class SelectionRequest(BaseModel):
    action: str  # set_incident | set_occurrence | set_detection | set_resolve
    text: str = ""


class SelectionResponse(BaseModel):
    status: str  # saved | ignored
    reason: Optional[str] = None
    incident_number: Optional[str] = None
    record: Optional[dict] = None


# -----------------------------------------------------------------------------
# No-cache for dynamic API responses (avoid 304 for stale data)
# -----------------------------------------------------------------------------
NO_CACHE_HEADERS = {"Cache-Control": "no-store, no-cache, must-revalidate", "Pragma": "no-cache"}


def _snapshot() -> dict:
    try:
        return store.get_all()
    except Exception as e:
        logger.error("store read failed: %s", e)
        raise HTTPException(status_code=503, detail="incident store unavailable")


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
@app.post("/selection", response_model=SelectionResponse)
def post_selection(body: SelectionRequest):
    """Handle one selection event. Ignored events still return 200 with a reason."""
    text = (body.text or "").strip()
    text_preview = (text[:80] + "…") if len(text) > 80 else text
    logger.info("selection received action=%s text_len=%d preview=%r", body.action, len(text), text_preview or "(empty)")

    if body.action not in ACTIONS:
        logger.warning("selection rejected: unknown action %r", body.action)
        return JSONResponse(
            status_code=400,
            content={"detail": f"action must be one of {', '.join(ACTIONS)}"},
            headers=NO_CACHE_HEADERS,
        )

    try:
        result = router.handle(body.action, body.text)
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))

    return JSONResponse(content=SelectionResponse(**result.to_dict()).model_dump(), headers=NO_CACHE_HEADERS)


@app.get("/current")
def get_current():
    return JSONResponse(content={"incident_number": router.current_incident}, headers=NO_CACHE_HEADERS)


@app.get("/incidents")
def get_incidents(formatted: bool = False):
    """List valid incident records. If formatted=true, also returns display rows for the table."""
    records = list_incidents(_snapshot())
    content = {"incidents": [r.to_dict() for r in records]}
    if formatted:
        content["rows"] = incident_rows(records)
    return JSONResponse(content=content, headers=NO_CACHE_HEADERS)


@app.get("/incidents/export.csv")
def export_csv():
    records = list_incidents(_snapshot())
    logger.info("csv export rows=%d", len(records))
    headers = dict(NO_CACHE_HEADERS)
    headers["Content-Disposition"] = 'attachment; filename="incidents.csv"'
    return Response(content=incidents_to_csv(records), media_type="text/csv", headers=headers)


@app.delete("/incidents")
def clear_incidents():
    """Remove every record and the current-incident pointer."""
    try:
        store.clear()
    except Exception as e:
        logger.error("store clear failed: %s", e)
        raise HTTPException(status_code=503, detail="incident store unavailable")
    router.current_incident = None
    logger.info("all incidents cleared")
    return JSONResponse(content={"status": "cleared"}, headers=NO_CACHE_HEADERS)


@app.get("/incident/{incident_number}")
def get_incident(incident_number: str):
    try:
        value = store.get(incident_key(incident_number))
    except Exception as e:
        logger.error("store read failed: %s", e)
        raise HTTPException(status_code=503, detail="incident store unavailable")
    if not isinstance(value, dict) or not value.get("incidentNumber"):
        logger.debug("get_incident not_found incident=%s", incident_number)
        raise HTTPException(status_code=404, detail="Incident not found")
    return JSONResponse(content=value, headers=NO_CACHE_HEADERS)


@app.get("/health")
def health():
    return JSONResponse(
        content={"status": "ok", "store": type(store).__name__, "current_incident": router.current_incident},
        headers=NO_CACHE_HEADERS,
    )
