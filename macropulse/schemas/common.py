"""Common schemas and error responses."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response schema (RFC 7807 inspired)."""

    error: str = Field(..., description="Error code", examples=["QUOTA_EXCEEDED"])
    message: str = Field(..., description="Human-readable error message")
    status: int = Field(..., description="HTTP status code")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error details"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "QUOTA_EXCEEDED",
                "message": "AI provider quota exceeded. Please try again later.",
                "status": 429,
                "details": {"isQuotaError": True},
            }
        }
    }


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall health status", examples=["healthy", "degraded"])
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    checks: Dict[str, bool] = Field(default_factory=dict, description="Individual service health checks")
