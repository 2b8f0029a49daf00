"""
AI provider package.

Usage:
    from macropulse.services.ai import GeminiProvider, ModelVariant

    provider = GeminiProvider()
    analysis = await provider.generate(snapshot, ModelVariant.GEMINI_2_5_FLASH)
"""

from macropulse.services.ai.client import AIClientManager
from macropulse.services.ai.config import (
    MODEL_LABELS,
    AISettings,
    ModelVariant,
    get_settings,
)
from macropulse.services.ai.generate import (
    AnalysisProvider,
    GeminiProvider,
    classify_error,
    is_quota_error,
    parse_analysis,
)
from macropulse.services.ai.prompts import INSTRUCTIONS, build_prompt
from macropulse.services.ai.schemas import (
    MARKET_ANALYSIS_SCHEMA,
    MarketAnalysis,
    Sentiment,
    get_json_schema,
)

__all__ = [
    # Client
    "AIClientManager",
    # Config
    "AISettings",
    "MODEL_LABELS",
    "ModelVariant",
    "get_settings",
    # Generation
    "AnalysisProvider",
    "GeminiProvider",
    "classify_error",
    "is_quota_error",
    "parse_analysis",
    # Prompts
    "INSTRUCTIONS",
    "build_prompt",
    # Schemas
    "MARKET_ANALYSIS_SCHEMA",
    "MarketAnalysis",
    "Sentiment",
    "get_json_schema",
]
