"""Market-indicator AI analysis with a similarity-based fallback cache."""

__version__ = "1.0.0"
