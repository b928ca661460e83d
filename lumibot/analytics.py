# one-way mirror of moderation events to the analytics service
from __future__ import annotations

import logging
from typing import Any, Optional

import discord
import httpx

logger = logging.getLogger(__name__)


class ModerationEventSink:
    """Posts moderation events as JSON. Every failure is logged and dropped."""

    def __init__(self, url: Optional[str], api_key: Optional[str] = None, *, timeout: float = 5.0) -> None:
        self.url = url
        self._api_key = api_key
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), headers=headers)
        return self._client

    async def record(self, kind: str, **fields: Any) -> bool:
        if not self.enabled:
            return False

        payload = {"event": kind, "timestamp": discord.utils.utcnow().isoformat(), **fields}
        try:
            response = await self._get_client().post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to record %s event: %s", kind, e)
            return False
        return True

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
