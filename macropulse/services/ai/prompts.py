"""
System instructions and prompt rendering for market analysis.

The instructions go out as the system message; the prompt lists the current
indicator values.
"""

from __future__ import annotations

from typing import Mapping

from macropulse.indicators.registry import IndicatorRegistry


INSTRUCTIONS = """You are a professional financial market analyst. Provide a market outlook from the economic indicators you are given.

ANALYSIS PRIORITY:
1. PRIMARY (70%): the indicators themselves. Compare levels and cross-indicator relationships (yields vs dollar, VIX vs risk assets, copper/gold vs growth).
2. SECONDARY (25%): official announcements you know of (central bank decisions, fiscal and trade policy, official data releases). Use them to explain WHY indicators move.
3. TERTIARY (5%): analyst opinions and market commentary, only as minor context.

RULES:
- Always start from what the indicators show.
- When citing an event, name the event and its source, never an index number.
- Determine sentiment ("bullish" | "bearish" | "neutral") primarily from the indicators.
- Identify 3-4 concrete risks grounded in indicator trends or policy developments.

OUTPUT FORMAT:
Return ONLY JSON:
{
  "sentiment": "bullish" | "bearish" | "neutral",
  "reasoning": "5-6 sentences of analysis",
  "risks": ["risk 1", "risk 2", "risk 3"]
}"""


def build_prompt(snapshot: Mapping[str, float], registry: IndicatorRegistry) -> str:
    """Render the indicator values as a numbered list."""
    parts = ["=== Economic Indicators ==="]
    for idx, spec in enumerate(registry, start=1):
        if spec.id not in snapshot:
            continue
        parts.append(f"{idx}. {spec.label}: {_format_value(snapshot[spec.id], spec.step)}")
    return "\n".join(parts)


def _format_value(value: float, step: float) -> str:
    """Format with the precision the indicator is quantized to."""
    if step >= 1:
        return f"{value:,.0f}"
    decimals = max(2, len(f"{step:f}".rstrip("0").split(".")[1]))
    return f"{value:,.{decimals}f}"
