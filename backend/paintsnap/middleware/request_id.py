"""
PaintSnap Backend — Request ID Middleware
===========================================

What:  Assigns a short correlation ID to each request and echoes it back in
       the `X-Request-ID` response header.
How:   Reuses a client-supplied `X-Request-ID`, otherwise generates one.
       Stored in a ContextVar so loggers and exception handlers can read it
       without access to the request object.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs are cut to this length before they reach logs and headers
MAX_REQUEST_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Client sent X-Request-ID → use it (truncated to 64 chars)
        2. Otherwise → first 8 chars of a UUID4
        3. Store in the ContextVar and on `request.state.request_id`
        4. Add to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # What: Upstream ID (load balancer, client retry) wins over a fresh one
        # 8 hex chars are enough to correlate lines within one deployment
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        rid = rid[:MAX_REQUEST_ID_LENGTH]

        # Not reset after the response: the catch-all exception handler runs
        # after call_next returns and still reads this value
        request_id_var.set(rid)
        request.state.request_id = rid
        response = await call_next(request)

        # Echoed so clients can quote it in bug reports
        response.headers["X-Request-ID"] = rid
        return response
