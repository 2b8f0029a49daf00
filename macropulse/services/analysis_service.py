"""
Analysis orchestration.

Exact cache first, then the AI provider, then the similarity fallback when
the provider reports quota exhaustion.

Usage:
    service = AnalysisService(cache, GeminiProvider())
    record = await service.get_analysis(ModelVariant.GEMINI_2_5_FLASH, snapshot)
    if record.is_fallback:
        show_staleness_warning(record.fallback_note)
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Mapping

from macropulse.cache.analysis_cache import AnalysisCache
from macropulse.cache.metrics import cache_metrics
from macropulse.cache.models import AnalysisRecord
from macropulse.core.config import Settings, get_settings
from macropulse.core.exceptions import (
    ProviderError,
    ProviderQuotaExceededError,
    StoreUnavailableError,
)
from macropulse.core.logging import get_logger
from macropulse.services.ai.config import ModelVariant
from macropulse.services.ai.generate import AnalysisProvider


logger = get_logger("services.analysis")

_DEFAULT = object()


class AnalysisService:
    """Produces an analysis for a snapshot, degrading to cached ones on quota errors."""

    def __init__(
        self,
        cache: AnalysisCache,
        provider: AnalysisProvider,
        settings: Settings | None = None,
    ):
        self.cache = cache
        self.provider = provider
        self.settings = settings or get_settings()

    async def get_analysis(
        self,
        variant: ModelVariant,
        snapshot: Mapping[str, float],
        *,
        timeout: float | None | object = _DEFAULT,
    ) -> AnalysisRecord:
        """Get an analysis for ``snapshot`` from ``variant``.

        ``timeout`` bounds the provider call in seconds; it defaults to
        ``settings.provider_timeout`` and ``None`` waits indefinitely.

        Raises:
            MissingIndicatorError: snapshot lacks required indicators.
            ProviderQuotaExceededError: quota exhausted and no cached analysis to fall back on.
            ProviderError: any other provider failure, including timeout.
        """
        if timeout is _DEFAULT:
            timeout = self.settings.provider_timeout

        # Validates the snapshot before any I/O
        fp = self.cache.fingerprint(snapshot)

        cached = await self.cache.get_exact(variant, snapshot)
        if cached is not None:
            return cached

        try:
            analysis = await asyncio.wait_for(
                self.provider.generate(snapshot, variant), timeout=timeout
            )
        except ProviderQuotaExceededError as e:
            return await self._fallback(variant, snapshot, e)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"AI provider timed out after {timeout}s", extra={"model": variant.value}
            )
            raise ProviderError(
                f"{variant.value} did not respond within {timeout} seconds",
                details={"model": variant.value, "timeout": timeout},
            ) from e

        record = AnalysisRecord.from_analysis(
            analysis,
            fingerprint=fp,
            model_variant=variant,
            produced_at=datetime.now(UTC),
        )

        try:
            await self.cache.put_exact(variant, snapshot, record)
        except StoreUnavailableError as e:
            logger.warning(
                f"Could not cache fresh analysis: {e}", extra={"model": variant.value}
            )

        return record

    async def _fallback(
        self,
        variant: ModelVariant,
        snapshot: Mapping[str, float],
        error: ProviderQuotaExceededError,
    ) -> AnalysisRecord:
        logger.info(
            "AI quota exceeded, searching fallback log", extra={"model": variant.value}
        )
        match = await self.cache.find_similar(variant, snapshot)

        if match is None:
            cache_metrics.record_error(f"fallback:{variant.value}")
            logger.warning(
                "No fallback analysis available", extra={"model": variant.value}
            )
            raise error

        logger.info(
            f"Serving fallback analysis produced at {match.produced_at.isoformat()}",
            extra={"model": variant.value, "fingerprint": match.fingerprint},
        )
        return match.as_fallback(self.settings.fallback_note)
