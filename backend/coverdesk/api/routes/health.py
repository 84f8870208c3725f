from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from coverdesk.core.config import get_settings
from coverdesk.db.bootstrap import find_schema_gaps
from coverdesk.db.session import engine

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Readiness for the coverage engine: database reachable and schema complete."""
    settings = get_settings()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            schema_gaps = find_schema_gaps(connection)
        database_ok = True
    except SQLAlchemyError:
        database_ok = False
        schema_gaps = []

    ready = database_ok and not schema_gaps
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database_ok": database_ok,
        "schema_gaps": schema_gaps,
        "smtp_configured": bool(settings.smtp_host and settings.smtp_from_email),
        "auto_assign_minimum_score": settings.auto_assign_minimum_score,
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
