"""
TourDesk Backend: Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks critical dependencies (database, image directory) and returns status.
Who:   Called by Docker health checks, load balancers, and monitoring systems.

Status levels:
    - healthy:   All dependencies operational (HTTP 200)
    - unhealthy: Database unreachable or image directory not writable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app import __version__
from app.schemas.tour import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "A critical dependency is down", "model": HealthResponse}},
)
async def health_check():
    """
    Probe the database with SELECT 1 and check the image directory is writable.

    Both are lightweight enough to run every few seconds.
    """
    db_status = "connected"
    store_status = "writable"
    overall = "healthy"

    try:
        from app.database import engine
        from sqlalchemy import text
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    from app.services.image_store import image_store
    if not image_store.is_writable():
        store_status = "unavailable"
        overall = "unhealthy"
        logger.warning("Health check: image directory not writable: %s", image_store.root)

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        image_store=store_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall != "healthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
