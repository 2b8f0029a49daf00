"""Application settings with Pydantic validation and environment loading."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "Macropulse API"
    app_version: str = "1.0.0"
    debug: bool = Field(
        default=False, description="Enable debug mode (disable in production)"
    )
    root_path: str = Field(default="", description="Root path for reverse proxy")
    environment: str = Field(
        default="production",
        description="Environment: development, staging, production",
    )

    # CORS
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins (no wildcards with credentials)",
    )

    # Valkey (Redis-compatible)
    valkey_url: str = Field(
        default="redis://valkey:6379/0", description="Valkey connection URL"
    )
    valkey_max_connections: int = Field(default=10, ge=1, le=100)

    # Analysis cache
    analysis_cache_ttl: int = Field(
        default=60 * 60 * 24,
        ge=60,
        description="TTL in seconds for exact-match and fallback-log entries",
    )
    fallback_log_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum fallback-log entries kept per model variant",
    )
    similarity_weight: float = Field(
        default=0.9, ge=0, description="Weight of market similarity in fallback score"
    )
    recency_weight: float = Field(
        default=0.1, ge=0, description="Weight of recency in fallback score"
    )
    indicator_overrides: Dict[str, Dict[str, float]] = Field(
        default_factory=dict,
        description='Per-indicator overrides, e.g. {"bitcoin": {"step": 1000}}',
    )
    fallback_note: str = Field(
        default=(
            "AI quota exceeded. Showing the analysis from today's history "
            "whose market conditions most closely match the current ones."
        ),
        description="Note attached to analyses served from the fallback log",
    )
    provider_timeout: Optional[float] = Field(
        default=90.0,
        gt=0,
        description="Seconds to wait for the AI provider (None disables)",
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="json", description="Log format: json or text")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("indicator_overrides", mode="before")
    @classmethod
    def parse_indicator_overrides(cls, v):
        if isinstance(v, str):
            return json.loads(v) if v.strip() else {}
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @model_validator(mode="after")
    def validate_score_weights(self) -> "Settings":
        if self.similarity_weight + self.recency_weight <= 0:
            raise ValueError("similarity_weight and recency_weight cannot both be 0")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
