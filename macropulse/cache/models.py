"""Cached analysis models: AnalysisRecord, CacheStats.

Records cross the store boundary as JSON and are validated on the way back
in, so a malformed entry fails loudly instead of leaking missing fields.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from macropulse.core.exceptions import CorruptCacheEntryError
from macropulse.services.ai.config import ModelVariant
from macropulse.services.ai.schemas import MarketAnalysis


class AnalysisRecord(MarketAnalysis):
    """Market analysis plus provenance metadata."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )

    produced_at: datetime = Field(description="When the provider produced this analysis")
    fingerprint: str = Field(description="Fingerprint of the snapshot it was produced for")
    model_variant: ModelVariant = Field(description="Model family that produced it")
    is_fallback: bool = Field(
        default=False, description="True when served from the similarity fallback"
    )
    fallback_note: Optional[str] = Field(
        default=None, description="Staleness note shown with fallback results"
    )

    @field_validator("produced_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @classmethod
    def from_analysis(
        cls,
        analysis: MarketAnalysis,
        *,
        fingerprint: str,
        model_variant: ModelVariant,
        produced_at: datetime | None = None,
    ) -> "AnalysisRecord":
        return cls(
            sentiment=analysis.sentiment,
            reasoning=analysis.reasoning,
            risks=list(analysis.risks),
            produced_at=produced_at or datetime.now(timezone.utc),
            fingerprint=fingerprint,
            model_variant=model_variant,
        )

    def as_fallback(self, note: str | None) -> "AnalysisRecord":
        """Copy marked as an approximate answer."""
        return self.model_copy(update={"is_fallback": True, "fallback_note": note})

    def dumps(self) -> str:
        """Serialize for the store."""
        return self.model_dump_json()

    @classmethod
    def loads(cls, raw: str | bytes) -> "AnalysisRecord":
        """Deserialize a stored record.

        Raises:
            CorruptCacheEntryError: if the payload does not validate.
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptCacheEntryError(
                details={"errors": e.error_count(), "reason": str(e).splitlines()[0]}
            ) from e


class CacheStats(BaseModel):
    """Key counts for one model variant."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )

    model_variant: ModelVariant
    exact_keys: int = 0
    fallback_keys: int = 0
