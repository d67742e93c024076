"""Health check and monitoring endpoints.

Provides endpoints for:
- Basic API information
- Liveness probes (process is up)
- Readiness probes (catalog and blob store reachable)
"""

import time
from typing import Any, Dict

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "running",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/health",
        "ready": "/ready",
    }


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Liveness endpoint.

    Does not touch the catalog or blob store, so a dependency outage does not
    get the process restarted; use /ready for traffic decisions.
    """
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """Liveness probe endpoint for Kubernetes."""
    return {"alive": True, "timestamp": time.time()}


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe endpoint.

    Returns 200 when both the catalog database and the document bucket are
    reachable, 503 otherwise.
    """
    state = request.app.state
    db = getattr(state, "db", None)
    blob_store = getattr(state, "blob_store", None)

    db_available = db is not None and await db.test_connection(timeout=5.0)
    storage_available = blob_store is not None and await blob_store.health_check(
        settings.GCS_BUCKET_NAME
    )

    components = {
        "database": "connected" if db_available else "unavailable",
        "storage": "reachable" if storage_available else "unavailable",
    }

    if not (db_available and storage_available):
        logger.warning("Readiness check failed", **components)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ready": False, "components": components, "timestamp": time.time()},
        )

    return {"ready": True, "components": components, "timestamp": time.time()}
