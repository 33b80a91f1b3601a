"""
EdgeGate Backend — Health Check Route
=====================================

What:  Health endpoint for container probes and load balancers.
How:   SELECT 1 against the database and PING against the cache.

Status levels:
    healthy    database reachable, cache reachable or not configured
    degraded   database reachable, configured cache unreachable
               (rate limiting is failing open)
    unhealthy  database unreachable (HTTP 503)

Served at /api/health so it falls under the API_PUBLIC prefixes and never
needs a session.
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from app import __version__
from app.database import engine
from app.schemas.common import HealthResponse
from app.services.cache import get_cache_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    cache_status = "disabled"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    cache = get_cache_client()
    if cache is not None:
        if await cache.ping():
            cache_status = "available"
        else:
            cache_status = "unavailable"
            if overall == "healthy":
                overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        cache=cache_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
