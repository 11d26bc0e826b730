"""
Health check endpoint - no authentication required
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

from ..config import API_VERSION
from ..db import session_scope

router = APIRouter(tags=["Health"])
logger = logging.getLogger("logvault.health")


@router.get("/health")
def health(request: Request):
    engine = request.app.state.engine

    storage = engine.storage.health()
    catalog = "ok"
    try:
        with session_scope(engine.session_factory) as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Catalog health check failed", extra={"component": "health", "error": str(e)})
        catalog = "error"

    ok = storage.reachable and storage.status != "red" and catalog == "ok"
    return JSONResponse(
        status_code=200 if ok else 503,
        content={
            "status": "ok" if ok else "degraded",
            "version": API_VERSION,
            "storage": {"status": storage.status, "reachable": storage.reachable, "detail": storage.detail},
            "catalog": catalog,
        },
    )
