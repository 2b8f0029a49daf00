"""
AI provider configuration.

Model variants are a closed set: every cache key embeds the variant value,
so a typo can never leak analyses between model families.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class ModelVariant(str, Enum):
    """Supported Gemini models."""
    GEMINI_2_5_FLASH = "gemini-2.5-flash"
    GEMINI_2_5_FLASH_LITE = "gemini-2.5-flash-lite"
    GEMINI_2_5_PRO = "gemini-2.5-pro"

    @property
    def label(self) -> str:
        return MODEL_LABELS[self]

    @classmethod
    def parse(cls, value: "str | ModelVariant | None") -> "ModelVariant":
        """Resolve a model name, defaulting to the configured model.

        Raises:
            ValueError: for names outside the supported set.
        """
        if value is None or value == "":
            return cls(get_settings().default_model)
        return cls(value)


MODEL_LABELS: dict[ModelVariant, str] = {
    ModelVariant.GEMINI_2_5_FLASH: "Gemini 2.5 Flash",
    ModelVariant.GEMINI_2_5_FLASH_LITE: "Gemini 2.5 Flash Lite",
    ModelVariant.GEMINI_2_5_PRO: "Gemini 2.5 Pro",
}


class AISettings(BaseSettings):
    """AI provider configuration from environment variables."""

    api_key: str = Field(default="", alias="GEMINI_API_KEY")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        alias="GEMINI_BASE_URL",
    )
    default_model: ModelVariant = Field(
        default=ModelVariant.GEMINI_2_5_FLASH, alias="AI_DEFAULT_MODEL"
    )

    # Retry configuration (transient errors only; quota errors are never retried)
    max_retries: int = Field(default=3, ge=1, alias="AI_MAX_RETRIES")
    retry_delay: float = Field(default=1.0, alias="AI_RETRY_DELAY")
    retry_max_delay: float = Field(default=30.0, alias="AI_RETRY_MAX_DELAY")

    # Connection configuration
    max_connections: int = Field(default=20, alias="AI_MAX_CONNECTIONS")
    request_timeout: float = Field(default=60.0, alias="AI_REQUEST_TIMEOUT")

    temperature: float = Field(default=0.4, ge=0, le=2, alias="AI_TEMPERATURE")

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}


@lru_cache(maxsize=1)
def get_settings() -> AISettings:
    """Get cached AI settings instance."""
    return AISettings()
