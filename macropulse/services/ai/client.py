"""
AI client manager.

Owns one ``AsyncOpenAI`` client pointed at the Gemini OpenAI-compatible
endpoint, created lazily under a lock with a pooled httpx transport.
"""

from __future__ import annotations

import asyncio

import httpx
from openai import AsyncOpenAI

from macropulse.core.exceptions import ProviderError
from macropulse.core.logging import get_logger
from macropulse.services.ai.config import AISettings, get_settings


logger = get_logger("ai.client")


class AIClientManager:
    """
    Manages the AI client lifecycle.

    Usage:
        manager = AIClientManager()
        client = await manager.get_client()
        completion = await client.chat.completions.create(...)
        await manager.close()
    """

    def __init__(self, settings: AISettings | None = None):
        self._settings = settings or get_settings()
        self._client: AsyncOpenAI | None = None
        self._http_client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> AISettings:
        return self._settings

    async def get_client(self) -> AsyncOpenAI:
        """Get or create the client.

        Raises:
            ProviderError: if no API key is configured.
        """
        if self._client is not None:
            return self._client

        async with self._lock:
            # Double-check after acquiring lock
            if self._client is not None:
                return self._client

            if not self._settings.api_key:
                logger.warning("Gemini API key not configured")
                raise ProviderError("AI provider API key is not configured")

            self._http_client = httpx.AsyncClient(
                limits=httpx.Limits(
                    max_connections=self._settings.max_connections,
                    max_keepalive_connections=max(1, self._settings.max_connections // 2),
                ),
                timeout=httpx.Timeout(self._settings.request_timeout, connect=10.0),
            )
            self._client = AsyncOpenAI(
                api_key=self._settings.api_key,
                base_url=self._settings.base_url,
                http_client=self._http_client,
                max_retries=0,  # retries are handled by tenacity
            )
            logger.debug("Created new AI client")
            return self._client

    async def close(self) -> None:
        """Close the client and release pooled connections."""
        async with self._lock:
            if self._http_client:
                try:
                    await self._http_client.aclose()
                except Exception as e:
                    logger.debug(f"Error closing HTTP client: {e}")
            self._http_client = None
            self._client = None
