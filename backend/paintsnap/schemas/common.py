"""
PaintSnap Backend — Shared Response Schemas
=============================================

What:  Error, health and plain-message payloads used across every router.
Why:   Clients need one error structure to parse programmatically, whatever
       endpoint produced it.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "account_limit_reached",
            "message": "You've reached the maximum of 5 areas for a basic account. ...",
            "details": {"resource": "areas", "limit": 5, "upgrade_url": "https://..."},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """
    What:  Health check response for monitoring systems.
    Who:   Returned by GET /health.

    Status values:
        healthy:   Database reachable and identity provider initialized
        degraded:  Database reachable, identity provider not ready
        unhealthy: Database unreachable
    """
    status: str = Field(description="Overall health: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database status: connected, disconnected")
    identity_provider: str = Field(description="Identity provider status: ready, unavailable")
    uptime_seconds: float = Field(description="Seconds since server start")
