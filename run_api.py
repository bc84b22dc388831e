#!/usr/bin/env python3
"""
Run the Incident Timestamp API.
Set INCIDENT_STORE_PATH in environment (or .env) to persist incidents to a JSON file; otherwise they are kept in memory.
"""
import os

from dotenv import load_dotenv
import uvicorn

load_dotenv()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.environ.get("RELOAD", "0") == "1",
    )
