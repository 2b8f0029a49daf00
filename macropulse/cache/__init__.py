"""Analysis cache: fingerprints, exact cache, fallback log, similarity scoring."""

from .analysis_cache import AnalysisCache
from .client import (
    close_valkey_client,
    create_valkey_client,
    valkey_healthcheck,
)
from .exact import ExactCache
from .fallback_log import FallbackLog
from .fingerprint import (
    fingerprint,
    parse_fingerprint,
    quantize,
    round_snapshot,
)
from .metrics import CacheTimer, cache_metrics
from .models import AnalysisRecord, CacheStats
from .similarity import ScoredCandidate, SimilarityScorer, select_best_match
from .store import DurableStore, ValkeyStore


__all__ = [
    # Client
    "create_valkey_client",
    "close_valkey_client",
    "valkey_healthcheck",
    # Store
    "DurableStore",
    "ValkeyStore",
    # Fingerprints
    "fingerprint",
    "parse_fingerprint",
    "quantize",
    "round_snapshot",
    # Cache
    "AnalysisCache",
    "AnalysisRecord",
    "CacheStats",
    "ExactCache",
    "FallbackLog",
    # Similarity
    "ScoredCandidate",
    "SimilarityScorer",
    "select_best_match",
    # Metrics
    "cache_metrics",
    "CacheTimer",
]
