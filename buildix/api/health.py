"""
Health endpoints.

Lightweight liveness/readiness probes without exposing secrets.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from buildix.core.database import check_connection, get_engine, metadata

logger = logging.getLogger("buildix")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    if not check_connection():
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    try:
        inspector = inspect(get_engine())
        missing = [name for name in metadata.tables if not inspector.has_table(name)]
        if missing:
            detail = f"missing tables: {', '.join(sorted(missing))}"
            logger.warning("readyz.missing_tables", extra={"missing": missing})
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok"}
    except Exception:
        logger.error("readyz.failed", exc_info=True)
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
