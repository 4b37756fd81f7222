"""Time-bounded memoization of structured extractions, keyed by domain."""
from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

import redis

from zerpha.config import get_settings
from zerpha.models.schemas import ExtractedCompany
from zerpha.services.domains import normalize_domain

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


@dataclass
class CacheEntry:
    data: ExtractedCompany
    timestamp: float


class ExtractionCache:
    """In-process cache. Entries older than the TTL read as absent.

    Not thread-safe: intended for a single event loop. Concurrent writers for
    the same domain race and the last ``set`` wins.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = int(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, website: str) -> Optional[ExtractedCompany]:
        key = normalize_domain(website)
        entry = self._entries.get(key)
        if entry is None:
            return None
        age = self._clock() - entry.timestamp
        if age > self.ttl_seconds:
            del self._entries[key]
            logger.debug("Extraction cache entry expired domain=%s", key)
            return None
        logger.info("Extraction cache hit domain=%s age_s=%.1f", key, age)
        return entry.data

    def set(self, website: str, data: ExtractedCompany) -> None:
        key = normalize_domain(website)
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())
        logger.debug("Stored extraction domain=%s", key)

    def prune(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.timestamp > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Pruned %d expired extraction cache entries", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, int]:
        return {"size": len(self._entries), "ttl_seconds": self.ttl_seconds}

    # Coroutine API shared with RedisExtractionCache; plain dict access never blocks.
    async def aget(self, website: str) -> Optional[ExtractedCompany]:
        return self.get(website)

    async def aset(self, website: str, data: ExtractedCompany) -> None:
        self.set(website, data)

    async def astats(self) -> Dict[str, int]:
        return self.stats()


class RedisExtractionCache:
    """Shared variant for multi-instance deployments; Redis expires entries."""

    def __init__(
        self,
        client: Optional["redis.Redis"] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        namespace: str = "extraction",
    ) -> None:
        if client is None:
            client = redis.Redis.from_url(get_settings().redis_url, decode_responses=True)
        self._client = client
        self.ttl_seconds = int(ttl_seconds)
        self._namespace = namespace

    def _key(self, website: str) -> str:
        digest = hashlib.sha256(normalize_domain(website).encode("utf-8")).hexdigest()
        return f"zerpha:{self._namespace}:{digest}"

    def get(self, website: str) -> Optional[ExtractedCompany]:
        try:
            raw = self._client.get(self._key(website))
        except redis.RedisError as exc:
            logger.warning("Redis extraction cache read failed: %s", exc)
            return None
        if not raw:
            return None
        try:
            return ExtractedCompany.model_validate_json(raw)
        except ValueError:
            logger.warning("Discarding unreadable extraction cache entry for %s", normalize_domain(website))
            return None

    def set(self, website: str, data: ExtractedCompany) -> None:
        try:
            self._client.setex(self._key(website), max(1, self.ttl_seconds), data.model_dump_json())
        except redis.RedisError as exc:
            logger.warning("Redis extraction cache write failed: %s", exc)

    def prune(self) -> int:
        return 0

    def stats(self) -> Dict[str, int]:
        size = 0
        try:
            for _ in self._client.scan_iter(match=f"zerpha:{self._namespace}:*", count=500):
                size += 1
        except redis.RedisError as exc:
            logger.warning("Redis extraction cache scan failed: %s", exc)
        return {"size": size, "ttl_seconds": self.ttl_seconds}

    # The redis client is synchronous; keep its round-trips off the event loop.
    async def aget(self, website: str) -> Optional[ExtractedCompany]:
        return await asyncio.to_thread(self.get, website)

    async def aset(self, website: str, data: ExtractedCompany) -> None:
        await asyncio.to_thread(self.set, website, data)

    async def astats(self) -> Dict[str, int]:
        return await asyncio.to_thread(self.stats)


AnyExtractionCache = Union[ExtractionCache, RedisExtractionCache]


def build_extraction_cache() -> AnyExtractionCache:
    settings = get_settings()
    ttl = int(settings.extraction_cache_ttl_seconds)
    if str(settings.extraction_cache_backend).strip().lower() == "redis":
        return RedisExtractionCache(ttl_seconds=ttl)
    return ExtractionCache(ttl_seconds=ttl)


extraction_cache: AnyExtractionCache = build_extraction_cache()


async def prune_periodically(cache: AnyExtractionCache, interval_seconds: float = 300.0) -> None:
    """Bound memory by pruning on an interval; run as a background task."""
    while True:
        await asyncio.sleep(interval_seconds)
        cache.prune()
