"""API dependencies: store, cache, provider and analysis service.

Resources are created once in the application lifespan and kept on
``app.state``; tests replace them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request

from macropulse.cache.analysis_cache import AnalysisCache
from macropulse.cache.store import DurableStore
from macropulse.core.config import Settings, get_settings
from macropulse.core.exceptions import BadRequestError, StoreUnavailableError
from macropulse.services.ai.config import ModelVariant
from macropulse.services.ai.generate import AnalysisProvider
from macropulse.services.analysis_service import AnalysisService


__all__ = [
    "get_analysis_service",
    "get_app_settings",
    "get_cache",
    "get_provider",
    "get_store",
    "parse_model_name",
]


def get_app_settings() -> Settings:
    return get_settings()


def get_store(request: Request) -> DurableStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreUnavailableError("Cache store not initialized")
    return store


def get_provider(request: Request) -> AnalysisProvider:
    return request.app.state.provider


def get_cache(
    store: DurableStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> AnalysisCache:
    return AnalysisCache(store, settings=settings)


def get_analysis_service(
    cache: AnalysisCache = Depends(get_cache),
    provider: AnalysisProvider = Depends(get_provider),
    settings: Settings = Depends(get_app_settings),
) -> AnalysisService:
    return AnalysisService(cache, provider, settings)


def parse_model_name(model_name: str | None) -> ModelVariant:
    """Resolve a requested model name.

    Raises:
        BadRequestError: for unsupported models.
    """
    try:
        return ModelVariant.parse(model_name)
    except ValueError as e:
        raise BadRequestError(
            f"Invalid model name: {model_name}",
            error_code="INVALID_MODEL",
            details={"valid_models": [variant.value for variant in ModelVariant]},
        ) from e
