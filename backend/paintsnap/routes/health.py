"""
PaintSnap Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Pings the database and asks the identity provider whether it finished
       initializing. Neither check touches user data.

Status levels:
    - healthy:   Database reachable, identity provider ready (HTTP 200)
    - degraded:  Database reachable, identity provider not ready (HTTP 200);
                 password login still works, token login does not
    - unhealthy: Database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response

from paintsnap import __version__
from paintsnap.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_ok = await request.app.state.database.ping()
    provider_ok = request.app.state.identity_provider.ready

    if not db_ok:
        overall = "unhealthy"
        response.status_code = 503
    elif not provider_ok:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database="connected" if db_ok else "disconnected",
        identity_provider="ready" if provider_ok else "unavailable",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
