"""
Pydantic models for AI structured outputs.

MarketAnalysis is the exact shape the model must return; its JSON schema is
sent as the response format so the provider returns matching JSON.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Sentiment(str, Enum):
    """Overall market outlook."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class MarketAnalysis(BaseModel):
    """Market outlook produced from an indicator snapshot."""
    sentiment: Sentiment = Field(
        description="Overall market sentiment derived primarily from the indicators"
    )
    reasoning: str = Field(
        min_length=1,
        description="5-6 sentences of analysis citing indicator trends and official announcements",
    )
    risks: list[str] = Field(
        default_factory=list,
        description="3-4 concrete risks",
    )


# =============================================================================
# Schema Generation
# =============================================================================

def get_json_schema(output_model: type[BaseModel], name: str) -> dict:
    """
    Build a chat-completions ``response_format`` from a Pydantic model.

    Structured outputs require ``additionalProperties: false`` on every object.
    """
    schema = output_model.model_json_schema()
    _add_additional_properties_false(schema)

    return {
        "type": "json_schema",
        "json_schema": {
            "name": name,
            "strict": True,
            "schema": schema,
        },
    }


def _add_additional_properties_false(schema: dict) -> None:
    """Recursively add additionalProperties: false to all object types."""
    if schema.get("type") == "object":
        schema["additionalProperties"] = False

    if "properties" in schema:
        for prop in schema["properties"].values():
            _add_additional_properties_false(prop)

    if "items" in schema:
        _add_additional_properties_false(schema["items"])

    if "$defs" in schema:
        for definition in schema["$defs"].values():
            _add_additional_properties_false(definition)

    for key in ("anyOf", "oneOf", "allOf"):
        if key in schema:
            for item in schema[key]:
                _add_additional_properties_false(item)


MARKET_ANALYSIS_SCHEMA = get_json_schema(MarketAnalysis, "market_analysis")
