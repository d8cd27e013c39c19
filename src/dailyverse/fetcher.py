'''Verse/passage text lookup against bible-api.com (no API key).

GET {BIBLE_API_BASE}/{reference}?translation=web returns JSON whose `text`
field holds the (possibly multi-verse) passage.
'''
from __future__ import annotations
import logging
from typing import Optional, Protocol
from urllib.parse import quote

import httpx
from cachelib import BaseCache, FileSystemCache, SimpleCache

from . import config
from .bible import Reference, normalize_ref
from .errors import FetchError

logger = logging.getLogger(__name__)


class TextFetcher(Protocol):
    async def fetch_text(self, reference: Reference) -> str: ...

    async def fetch_passage(self, range_reference: str) -> str: ...


def default_cache() -> BaseCache:
    if config.TEXT_CACHE_DIR:
        return FileSystemCache(config.TEXT_CACHE_DIR, threshold=2000, default_timeout=0)
    return SimpleCache(threshold=500, default_timeout=0)


class BibleApiFetcher:
    '''TextFetcher over bible-api.com, with a cachelib cache of known-good texts.

    Use as an async context manager when it owns its HTTP client.
    '''
    def __init__(self,
            base_url: str = config.BIBLE_API_BASE,
            translation: str = config.TRANSLATION,
            client: Optional[httpx.AsyncClient] = None,
            cache: Optional[BaseCache] = None,
            timeout: float = config.HTTP_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.translation = translation.lower()
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self.cache = cache if cache is not None else default_cache()

    async def __aenter__(self) -> BibleApiFetcher:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def url_for(self, reference: str) -> str:
        return f"{self.base_url}/{quote(reference)}"

    async def _lookup(self, reference: str) -> str:
        cache_key = f"{self.translation}:{reference}"
        cached = self.cache.get(cache_key)
        if cached:
            return cached

        if self._client is None:
            raise RuntimeError("BibleApiFetcher used outside of 'async with'")
        try:
            r = await self._client.get(self.url_for(reference), params={"translation": self.translation})
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as err:
            raise FetchError(f"text lookup for '{reference}' failed: {err}") from err
        except ValueError as err:
            raise FetchError(f"text lookup for '{reference}' returned invalid JSON") from err

        text = (data.get("text") or "").strip() if isinstance(data, dict) else ""
        if not text:
            raise FetchError(f"text lookup for '{reference}' returned no text")
        self.cache.set(cache_key, text)
        logger.debug("fetched '%s' (%d chars)", reference, len(text))
        return text

    async def fetch_text(self, reference: Reference) -> str:
        return await self._lookup(str(reference))

    async def fetch_passage(self, range_reference: str) -> str:
        return await self._lookup(normalize_ref(range_reference))
