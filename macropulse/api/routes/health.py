"""Health check endpoints."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from macropulse.core.config import settings
from macropulse.core.logging import get_logger
from macropulse.schemas.common import HealthResponse


router = APIRouter(prefix="/health")

logger = get_logger("health")


async def store_healthcheck(request: Request) -> bool:
    """Check the cache store, if one is attached."""
    store = getattr(request.app.state, "store", None)
    ping = getattr(store, "ping", None)
    if ping is None:
        return False
    try:
        return bool(await ping())
    except Exception as e:
        logger.warning(f"Store healthcheck failed: {e}")
        return False


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the API and its cache store.",
)
async def health_check(request: Request) -> HealthResponse:
    """
    Perform health check on API and dependencies.

    The API stays usable without the store (every lookup misses and no
    fallback is available), so a store outage reports "degraded".
    """
    checks = {"cache": await store_healthcheck(request)}

    return HealthResponse(
        status="healthy" if all(checks.values()) else "degraded",
        version=settings.app_version,
        timestamp=datetime.now(UTC),
        checks=checks,
    )


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the API process is alive.",
)
async def liveness_check() -> dict:
    """
    Kubernetes-style liveness probe.

    Simple check that the process is running.
    """
    return {"status": "alive"}


@router.get(
    "/cache",
    summary="Cache statistics",
    description="Get cache hit/miss statistics for monitoring.",
)
async def cache_stats() -> dict:
    """Hit rates, error counts and timing for every cache prefix."""
    from macropulse.cache.metrics import cache_metrics

    return cache_metrics.get_summary()
