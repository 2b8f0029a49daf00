"""Schemas for the AI prediction endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AIPredictionRequest(BaseModel):
    """Analysis request.

    The dashboard payload normally arrives under ``dashboardData``; a bare
    payload (``{"indicators": {...}}``) is accepted too.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        protected_namespaces=(),
    )

    dashboard_data: Optional[Dict[str, Any]] = Field(
        default=None, description="Dashboard payload with current indicator values"
    )
    model_name: Optional[str] = Field(
        default=None, description="Gemini model; the configured default when omitted"
    )

    def payload(self) -> Dict[str, Any]:
        """The dashboard payload, whichever shape it was sent in."""
        if self.dashboard_data is not None:
            return self.dashboard_data
        return dict(self.model_extra or {})


class CacheStatsResponse(BaseModel):
    """Key counts in the store plus process-local counters."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )

    model_name: str
    exact_keys: int
    fallback_keys: int
    ttl_seconds: int
    max_fallback_entries: int
    metrics: Dict[str, Any] = Field(default_factory=dict)


class CacheClearResponse(BaseModel):
    """Result of clearing cached analyses."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )

    model_name: Optional[str] = Field(default=None, description="None when every model was cleared")
    deleted: int
