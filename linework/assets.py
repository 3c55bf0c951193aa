"""
Lesson asset preloading.

Preloading only warms caches for theory images/videos and reference
images. A failed preload never blocks a lesson; callers log and move on.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Protocol
from urllib.parse import urljoin

import httpx
from loguru import logger

from linework.config import Settings, get_settings


class AssetLoader(Protocol):
    async def preload(self, url: str) -> None:
        """Fetch an asset ahead of use. Raises on failure."""
        ...


class NullAssetLoader:
    """Loader that does nothing; for offline use and tests."""

    async def preload(self, url: str) -> None:
        return None


class HttpAssetLoader:
    """Preloads assets over HTTP with httpx, keeping the most recently used bytes in memory."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
        max_entries: int = 64,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )
        self.max_entries = max_entries
        self.cache: OrderedDict[str, bytes] = OrderedDict()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> HttpAssetLoader:
        settings = settings or get_settings()
        return cls(
            settings.asset_base_url,
            settings.asset_timeout_seconds,
            max_entries=settings.asset_cache_entries,
        )

    def resolve(self, url: str) -> str:
        """Absolute URLs pass through; relative ones join the base URL."""
        return urljoin(self.base_url, url)

    async def preload(self, url: str) -> None:
        """
        Fetch an asset into the cache.

        Raises:
            httpx.HTTPError: On request failure or a non-2xx response
        """
        resolved = self.resolve(url)
        if resolved in self.cache:
            self.cache.move_to_end(resolved)
            return
        response = await self.client.get(resolved)
        response.raise_for_status()
        self.cache[resolved] = response.content
        while len(self.cache) > self.max_entries:
            self.cache.popitem(last=False)
        logger.debug(f"Preloaded asset {resolved} ({len(response.content)} bytes)")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
