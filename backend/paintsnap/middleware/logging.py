"""
PaintSnap Backend — Request Logging Middleware
================================================

What:  One access log line per request: method, path, status, duration,
       request ID and client IP.
How:   Level follows the status (5xx ERROR, 4xx WARNING, else INFO) so
       alerting can key on severity. `/health` is skipped; health checks would
       drown everything else.

Never logged: request bodies, passwords, ID tokens, cookies, image bytes.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from paintsnap.middleware.request_id import request_id_var

logger = logging.getLogger("paintsnap.access")

# Load balancer health checks hit these every few seconds
QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one access line per request once the response is ready."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        # perf_counter: monotonic, unaffected by wall-clock adjustments
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        # RequestIDMiddleware sits outside this one, so the ID is already set
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        # ── Severity follows the status class ─────────────────────────────
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            # Structured copy for JSON log handlers
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
