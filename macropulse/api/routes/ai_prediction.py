"""AI market prediction endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from macropulse.api.deps import (
    get_analysis_service,
    get_app_settings,
    get_cache,
    parse_model_name,
)
from macropulse.cache.analysis_cache import AnalysisCache
from macropulse.cache.metrics import cache_metrics
from macropulse.cache.models import AnalysisRecord
from macropulse.core.config import Settings
from macropulse.core.logging import get_logger
from macropulse.indicators.snapshot import IndicatorSnapshot
from macropulse.schemas.ai_prediction import (
    AIPredictionRequest,
    CacheClearResponse,
    CacheStatsResponse,
)
from macropulse.services.analysis_service import AnalysisService


router = APIRouter()

logger = get_logger("api.ai_prediction")


@router.post(
    "",
    response_model=AnalysisRecord,
    summary="Market analysis",
    description=(
        "Analyze the current indicator values. Serves cached analyses for "
        "matching conditions and, when the AI quota is exhausted, the most "
        "similar analysis from today's history marked with isFallback."
    ),
)
async def create_prediction(
    body: AIPredictionRequest,
    service: AnalysisService = Depends(get_analysis_service),
) -> AnalysisRecord:
    variant = parse_model_name(body.model_name)
    snapshot = IndicatorSnapshot.from_dashboard(body.payload())

    record = await service.get_analysis(variant, snapshot)
    logger.info(
        f"Returning {'fallback' if record.is_fallback else 'fresh/cached'} analysis",
        extra={"model": variant.value, "fingerprint": record.fingerprint},
    )
    return record


@router.get(
    "/cache/stats",
    response_model=CacheStatsResponse,
    summary="Analysis cache statistics",
)
async def cache_stats(
    model_name: Optional[str] = Query(default=None, alias="modelName"),
    cache: AnalysisCache = Depends(get_cache),
    settings: Settings = Depends(get_app_settings),
) -> CacheStatsResponse:
    """Live key counts for one model plus process-local hit/miss counters."""
    variant = parse_model_name(model_name)
    stats = await cache.stats(variant)

    metrics = {
        **cache_metrics.get_stats(f"exact:{variant.value}"),
        **cache_metrics.get_stats(f"fallback:{variant.value}"),
    }
    return CacheStatsResponse(
        model_name=variant.value,
        exact_keys=stats.exact_keys,
        fallback_keys=stats.fallback_keys,
        ttl_seconds=settings.analysis_cache_ttl,
        max_fallback_entries=settings.fallback_log_size,
        metrics=metrics,
    )


@router.delete(
    "/cache",
    response_model=CacheClearResponse,
    summary="Clear cached analyses",
)
async def clear_cache(
    model_name: Optional[str] = Query(default=None, alias="modelName"),
    cache: AnalysisCache = Depends(get_cache),
) -> CacheClearResponse:
    """Delete cached analyses for one model, or for every model when omitted."""
    variant = parse_model_name(model_name) if model_name else None
    deleted = await cache.clear(variant)
    return CacheClearResponse(
        model_name=variant.value if variant else None,
        deleted=deleted,
    )
