"""
PaintSnap Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Auth Rate Limit] → [Request ID] → [Logging] → [Session]
            → [GZip] → [CORS] → Route Handler

    1. Auth rate limit first: brute-force attempts on the credential
       endpoints are rejected before a session is decoded or a row read
    2. Request ID: correlation ID for every later log line
    3. Logging: method, path, status and duration with the request ID
    4. Session: signed cookie decoded into `request.session`
"""
