"""Store key layout for cached analyses.

    macropulse:v1:analysis:{variant}:exact:{sha256(fingerprint)}
    macropulse:v1:analysis:{variant}:fallback:{produced_ms:013d}-{token}
"""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Union

from macropulse.cache.fingerprint import fingerprint_digest
from macropulse.services.ai.config import ModelVariant

# Cache key prefixes for namespacing
CACHE_PREFIX = "macropulse"
CACHE_VERSION = "v1"
ANALYSIS_NAMESPACE = "analysis"

EXACT = "exact"
FALLBACK = "fallback"


def cache_key(*parts: Union[str, int, float], prefix: str = ANALYSIS_NAMESPACE) -> str:
    """
    Generate a consistent cache key from parts.

    Usage:
        cache_key("gemini-2.5-flash", "exact", "ab12") ->
            "macropulse:v1:analysis:gemini-2.5-flash:exact:ab12"
    """
    sanitized = [str(part).replace(":", "_") for part in parts]
    return f"{CACHE_PREFIX}:{CACHE_VERSION}:{prefix}:{':'.join(sanitized)}"


def variant_prefix(variant: ModelVariant | None = None) -> str:
    """Prefix covering every analysis key, or those of one variant."""
    if variant is None:
        return f"{CACHE_PREFIX}:{CACHE_VERSION}:{ANALYSIS_NAMESPACE}:"
    return cache_key(variant.value) + ":"


def exact_key(variant: ModelVariant, fingerprint: str) -> str:
    return cache_key(variant.value, EXACT, fingerprint_digest(fingerprint))


def exact_prefix(variant: ModelVariant) -> str:
    return cache_key(variant.value, EXACT) + ":"


def fallback_prefix(variant: ModelVariant) -> str:
    return cache_key(variant.value, FALLBACK) + ":"


def fallback_key(variant: ModelVariant, produced_at: datetime, token: str | None = None) -> str:
    """Log key embedding the production time in epoch milliseconds."""
    millis = int(produced_at.timestamp() * 1000)
    token = token or secrets.token_hex(4)
    return cache_key(variant.value, FALLBACK, f"{millis:013d}-{token}")


def fallback_sort_key(key: str) -> tuple[int, str]:
    """(timestamp_ms, token) embedded in a fallback key; unparseable keys sort first."""
    suffix = key.rsplit(":", 1)[-1]
    millis, _, token = suffix.partition("-")
    try:
        return int(millis), token
    except ValueError:
        return -1, suffix
