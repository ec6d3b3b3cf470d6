"""
PaintSnap Backend — Auth Rate Limiting Middleware
===================================================

What:  Per-IP sliding window limiter on the credential endpoints
       (register, login, verify-token).
Why:   Password guessing and token stuffing hit exactly these paths; the
       rest of the API is already behind authentication.
How:   Each IP keeps a list of request timestamps inside the window. Once
       the list holds `max_requests` entries the request is answered with
       429 and a Retry-After header, in the standard error body.

Single-process only: state lives in memory. Multiple workers each keep
their own counters.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, Iterable, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from paintsnap.exceptions import RateLimitExceededError
from paintsnap.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

AUTH_PATHS = frozenset({
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/verify-token",
})

# Inactive IPs are swept once per this many limited requests
CLEANUP_EVERY = 1000


class AuthRateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Args:
        max_requests: Requests allowed per IP inside one window
        window:       Window length in seconds
        paths:        Exact paths the limit applies to (POST only)
    """

    def __init__(
        self,
        app,
        max_requests: int = 20,
        window: int = 60,
        paths: Iterable[str] = AUTH_PATHS,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window = window
        self.paths = frozenset(paths)
        # What: IP → timestamps of its limited requests, oldest first
        self._requests: Dict[str, List[float]] = defaultdict(list)
        # What: Limited requests seen since start; drives the periodic sweep
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Only POSTs to the credential endpoints count; logout and reads pass through
        if request.method != "POST" or request.url.path not in self.paths:
            return await call_next(request)

        # Caveat: behind a proxy this is the proxy address unless uvicorn is
        # started with --proxy-headers
        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window

        # ── Sliding Window: drop expired entries ──────────────────────────
        history = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = history

        # ── Check rate limit ──────────────────────────────────────────────
        if len(history) >= self.max_requests:
            # Seconds until the oldest entry leaves the window
            retry_after = int(history[0] + self.window - now) + 1
            logger.warning(
                "Auth rate limit exceeded for IP %s on %s: %d requests in %ds window",
                client_ip,
                request.url.path,
                len(history),
                self.window,
            )
            # Same body the exception handlers produce; middleware runs outside them
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": exc.error_code,
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        # ── Record this request ───────────────────────────────────────────
        history.append(now)

        # ── Periodic cleanup of inactive IPs ──────────────────────────────
        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Forget IPs whose newest request is older than the window."""
        inactive = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive:
            del self._requests[ip]
        if inactive:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive))
