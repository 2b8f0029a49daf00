"""Pytest configuration and fixtures."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Generator, Iterable, Mapping

import pytest
from fastapi.testclient import TestClient

from macropulse.cache.analysis_cache import AnalysisCache
from macropulse.cache.fingerprint import fingerprint
from macropulse.cache.metrics import cache_metrics
from macropulse.cache.models import AnalysisRecord
from macropulse.core.config import Settings
from macropulse.core.exceptions import StoreUnavailableError
from macropulse.indicators.registry import IndicatorRegistry, IndicatorSpec
from macropulse.services.ai.config import ModelVariant
from macropulse.services.ai.schemas import MarketAnalysis, Sentiment
from macropulse.services.analysis_service import AnalysisService


# ============================================================================
# Test doubles
# ============================================================================


class MemoryStore:
    """In-memory DurableStore with per-key expiry and failure switches."""

    def __init__(self):
        self.data: dict[str, tuple[str, float]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_list = False
        self.fail_delete = False
        self.set_calls: list[tuple[str, int]] = []

    def _alive(self, key: str) -> bool:
        entry = self.data.get(key)
        if entry is None:
            return False
        if entry[1] <= time.monotonic():
            del self.data[key]
            return False
        return True

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise StoreUnavailableError("store down")
        return self.data[key][0] if self._alive(key) else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if self.fail_writes:
            raise StoreUnavailableError("store down")
        self.set_calls.append((key, ttl_seconds))
        self.data[key] = (value, time.monotonic() + ttl_seconds)

    async def list_keys(self, prefix: str) -> list[str]:
        if self.fail_list:
            raise StoreUnavailableError("store down")
        return [key for key in list(self.data) if key.startswith(prefix) and self._alive(key)]

    async def delete(self, *keys: str) -> int:
        if self.fail_delete:
            raise StoreUnavailableError("store down")
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def ping(self) -> bool:
        return not self.fail_reads

    def expire(self, key: str) -> None:
        """Force ``key`` to expire now."""
        value, _ = self.data[key]
        self.data[key] = (value, time.monotonic() - 1)


class ScriptedProvider:
    """AnalysisProvider returning queued results or raising queued errors."""

    def __init__(self, results: Iterable[MarketAnalysis | BaseException] = ()):
        self.results = list(results)
        self.calls: list[tuple[dict, ModelVariant]] = []

    async def generate(self, snapshot: Mapping[str, float], variant: ModelVariant) -> MarketAnalysis:
        self.calls.append((dict(snapshot), variant))
        result = self.results.pop(0) if self.results else make_analysis()
        if isinstance(result, BaseException):
            raise result
        return result


def make_analysis(
    sentiment: Sentiment = Sentiment.NEUTRAL, reasoning: str = "Mixed signals."
) -> MarketAnalysis:
    return MarketAnalysis(
        sentiment=sentiment,
        reasoning=reasoning,
        risks=["Rate volatility", "Dollar strength"],
    )


# ============================================================================
# Fixtures
# ============================================================================


TWO_INDICATORS = IndicatorRegistry(
    [
        IndicatorSpec("yieldPct", "Yield", step=0.01, min_range=0.1),
        IndicatorSpec("dxy", "Dollar Index", step=0.1, min_range=1.0),
    ]
)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-global; start every test from zero."""
    cache_metrics.reset()
    yield


@pytest.fixture
def settings() -> Settings:
    return Settings(
        analysis_cache_ttl=86400,
        fallback_log_size=3,
        provider_timeout=5.0,
        log_format="text",
    )


@pytest.fixture
def registry() -> IndicatorRegistry:
    return TWO_INDICATORS


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cache(store: MemoryStore, registry: IndicatorRegistry, settings: Settings) -> AnalysisCache:
    return AnalysisCache(store, registry=registry, settings=settings)


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def service(cache: AnalysisCache, provider: ScriptedProvider, settings: Settings) -> AnalysisService:
    return AnalysisService(cache, provider, settings)


@pytest.fixture
def snapshot() -> dict[str, float]:
    return {"yieldPct": 4.523, "dxy": 104.97}


@pytest.fixture
def record_factory(registry: IndicatorRegistry):
    """Build AnalysisRecords for a snapshot at a given age."""

    def _make(
        values: Mapping[str, float],
        *,
        age: timedelta = timedelta(0),
        variant: ModelVariant = ModelVariant.GEMINI_2_5_FLASH,
        now: datetime | None = None,
        reasoning: str = "Logged analysis.",
    ) -> AnalysisRecord:
        now = now or datetime.now(UTC)
        return AnalysisRecord.from_analysis(
            make_analysis(reasoning=reasoning),
            fingerprint=fingerprint(values, registry.rounding_table),
            model_variant=variant,
            produced_at=now - age,
        )

    return _make


@pytest.fixture
def client(
    store: MemoryStore, provider: ScriptedProvider, settings: Settings
) -> Generator[TestClient, None, None]:
    """Test client wired to the in-memory store and scripted provider.

    Uses the default nine-indicator registry.
    """
    from macropulse.api import deps
    from macropulse.api.app import create_api_app

    app = create_api_app()
    app.state.store = store
    app.state.provider = provider
    app.dependency_overrides[deps.get_app_settings] = lambda: settings

    # No context manager: the lifespan would attach a real Valkey store
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def dashboard_payload() -> dict:
    """Dashboard payload covering every default indicator."""
    values = {
        "us10yYield": 4.52,
        "dxy": 104.9,
        "highYieldSpread": 3.1,
        "m2MoneySupply": 21500,
        "crudeOil": 78.4,
        "copperGoldRatio": 1.92,
        "pmi": 99.8,
        "putCallRatio": 15.2,
        "bitcoin": 67250,
    }
    return {"indicators": {key: {"value": value} for key, value in values.items()}}


