"""
Market analysis generation.

Provides the Gemini-backed ``AnalysisProvider`` with:
- Structured JSON output validated by Pydantic
- Retry with exponential backoff for transient failures
- Quota / rate-limit classification, so callers can fall back to cached
  analyses instead of failing
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from typing import Any, Mapping, Protocol

import openai
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from macropulse.core.exceptions import ProviderError, ProviderQuotaExceededError
from macropulse.core.logging import get_logger
from macropulse.indicators.registry import IndicatorRegistry, get_registry
from macropulse.services.ai.client import AIClientManager
from macropulse.services.ai.config import AISettings, ModelVariant, get_settings
from macropulse.services.ai.prompts import INSTRUCTIONS, build_prompt
from macropulse.services.ai.schemas import MARKET_ANALYSIS_SCHEMA, MarketAnalysis

logger = get_logger("ai.generate")


# Substrings providers use when a quota or rate limit is exhausted
QUOTA_MARKERS = ("quota", "rate limit", "429", "resource exhausted", "resource_exhausted")

TRANSIENT_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.InternalServerError,
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class AnalysisProvider(Protocol):
    """Anything that turns a snapshot into a market analysis."""

    async def generate(
        self, snapshot: Mapping[str, float], variant: ModelVariant
    ) -> MarketAnalysis:
        """Produce an analysis.

        Raises:
            ProviderQuotaExceededError: quota or rate limit exhausted.
            ProviderError: any other failure.
        """


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================


def is_quota_error(exc: BaseException) -> bool:
    """True for quota exhaustion / rate limiting, by type, status or message."""
    if isinstance(exc, (ProviderQuotaExceededError, openai.RateLimitError)):
        return True
    if isinstance(exc, openai.APIStatusError) and exc.status_code == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in QUOTA_MARKERS)


def classify_error(exc: BaseException, variant: ModelVariant) -> ProviderError | ProviderQuotaExceededError:
    """Map a provider SDK error onto the application taxonomy."""
    if is_quota_error(exc):
        return ProviderQuotaExceededError(details={"model": variant.value})
    return ProviderError(
        f"{variant.value} request failed: {exc}",
        details={"model": variant.value, "error_type": type(exc).__name__},
    )


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TRANSIENT_ERRORS) and not is_quota_error(exc)


# =============================================================================
# RESPONSE PARSING
# =============================================================================


def parse_analysis(text: str) -> MarketAnalysis:
    """Extract and validate the JSON object in a model response.

    Raises:
        ProviderError: if no valid analysis object is present.
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ProviderError("Invalid response format from AI provider")

    try:
        data = json.loads(match.group(0))
        return MarketAnalysis.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Failed to parse analysis JSON: {e}")
        raise ProviderError("AI provider returned a malformed analysis") from e


# =============================================================================
# PROVIDER
# =============================================================================


class GeminiProvider:
    """AnalysisProvider calling Gemini through its OpenAI-compatible API."""

    def __init__(
        self,
        manager: AIClientManager | None = None,
        registry: IndicatorRegistry | None = None,
        settings: AISettings | None = None,
    ):
        self._settings = settings or get_settings()
        self._manager = manager or AIClientManager(self._settings)
        self._registry = registry or get_registry()

    async def generate(
        self, snapshot: Mapping[str, float], variant: ModelVariant
    ) -> MarketAnalysis:
        client = await self._manager.get_client()
        params: dict[str, Any] = {
            "model": variant.value,
            "messages": [
                {"role": "system", "content": INSTRUCTIONS},
                {"role": "user", "content": build_prompt(snapshot, self._registry)},
            ],
            "response_format": MARKET_ANALYSIS_SCHEMA,
            "temperature": self._settings.temperature,
        }

        start_time = datetime.now(UTC)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries),
                wait=wait_exponential_jitter(
                    initial=self._settings.retry_delay,
                    max=self._settings.retry_max_delay,
                    jitter=1.0,
                ),
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    completion = await client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            error = classify_error(e, variant)
            logger.warning(
                f"Generation failed for {variant.value}: {e}",
                extra={"quota": isinstance(error, ProviderQuotaExceededError)},
            )
            raise error from e

        if not completion.choices:
            raise ProviderError(f"{variant.value} returned no choices")
        output = completion.choices[0].message.content or ""
        if not output.strip():
            raise ProviderError(f"{variant.value} returned empty output")

        analysis = parse_analysis(output)

        duration_ms = int((datetime.now(UTC) - start_time).total_seconds() * 1000)
        usage = completion.usage
        logger.info(
            f"[ANALYSIS] {variant.value} - "
            f"{getattr(usage, 'prompt_tokens', 0)} in / {getattr(usage, 'completion_tokens', 0)} out tokens, "
            f"{duration_ms}ms, sentiment={analysis.sentiment.value}"
        )
        return analysis

    async def close(self) -> None:
        await self._manager.close()
