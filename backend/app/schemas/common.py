"""
EdgeGate Backend — Shared Response Schemas
==========================================

What:  Error, health and pagination models shared by every router.
Why:   Clients need one error shape to parse programmatically, whichever
       route produced it.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "rate_limit_exceeded",
            "message": "Rate limit exceeded. Please wait 42 seconds ...",
            "details": {"retry_after": 42},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class PaginationMeta(BaseModel):
    """Offset pagination metadata returned next to list payloads."""
    page: int = Field(ge=1)
    limit: int = Field(ge=1, le=100)
    total: int = Field(ge=0)
    total_pages: int = Field(ge=0)


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    cache: str = Field(description="Cache status: available, unavailable, disabled")
    uptime_seconds: float = Field(description="Seconds since service started")
