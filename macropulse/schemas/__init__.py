"""Request and response schemas for the HTTP API."""

from .ai_prediction import (
    AIPredictionRequest,
    CacheClearResponse,
    CacheStatsResponse,
)
from .common import ErrorResponse, HealthResponse


__all__ = [
    "AIPredictionRequest",
    "CacheClearResponse",
    "CacheStatsResponse",
    "ErrorResponse",
    "HealthResponse",
]
