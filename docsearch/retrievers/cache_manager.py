"""Cache manager for the built corpus and lightweight metadata."""

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import redis.asyncio as redis
import structlog

from ..common.metrics import MetricsCollector
from ..exceptions import CorpusFormatError
from ..models import SearchDocument, dump_documents, parse_documents

logger = structlog.get_logger("corpus_cache")


@dataclass
class CachedCorpus:
    """A corpus read back from the cache."""

    documents: List[SearchDocument]
    cached_at: float
    age: float


class CorpusCacheManager:
    """Persists the corpus and metadata payloads in Redis with a TTL.

    Entries are JSON objects carrying a ``cached_at`` timestamp. Expiry is
    enforced twice: Redis expires the key, and reads compare the entry age
    against the TTL so an entry older than the TTL is never served. Every
    read treats the stored bytes as untrusted; storage errors, malformed
    entries and expired entries are all reported as a miss.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        corpus_cache_ttl: int = 86400,    # 24 hours
        metadata_cache_ttl: int = 3600,   # 1 hour
        key_prefix: str = "docsearch:",
        redis_client: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.redis_client = redis_client if redis_client is not None else redis.from_url(redis_url)
        self.corpus_cache_ttl = corpus_cache_ttl
        self.metadata_cache_ttl = metadata_cache_ttl
        self.clock = clock
        self.metrics = metrics

        self.corpus_key = f"{key_prefix}corpus"
        self.metadata_prefix = f"{key_prefix}metadata:"

    async def load_corpus(self) -> Optional[CachedCorpus]:
        """Return the cached corpus, or ``None`` on a miss."""
        entry = await self._read(self.corpus_key, self.corpus_cache_ttl, "corpus")
        if entry is None:
            return None

        try:
            documents = parse_documents(entry.get("documents"))
        except CorpusFormatError as e:
            logger.warning("Discarding corrupt cached corpus", error=str(e))
            await self._discard(self.corpus_key)
            self._record(False, "corpus")
            return None

        cached_at = float(entry["cached_at"])
        self._record(True, "corpus")
        logger.info("Corpus cache hit", documents=len(documents), age_seconds=round(self.clock() - cached_at, 1))
        return CachedCorpus(documents=documents, cached_at=cached_at, age=self.clock() - cached_at)

    async def store_corpus(self, documents: List[SearchDocument]) -> bool:
        """Persist the corpus; returns ``False`` if the write failed."""
        payload = {"documents": dump_documents(documents), "cached_at": self.clock()}
        stored = await self._write(self.corpus_key, payload, self.corpus_cache_ttl)
        if stored:
            logger.debug("Corpus cached", documents=len(documents))
        return stored

    async def load_metadata(self, name: str) -> Optional[Any]:
        """Return a cached metadata payload (e.g. the versioned index)."""
        entry = await self._read(self.metadata_prefix + name, self.metadata_cache_ttl, "metadata")
        if entry is None:
            return None
        if "payload" not in entry:
            logger.warning("Discarding corrupt cached metadata", name=name)
            await self._discard(self.metadata_prefix + name)
            self._record(False, "metadata")
            return None

        self._record(True, "metadata")
        return entry["payload"]

    async def store_metadata(self, name: str, payload: Any) -> bool:
        return await self._write(
            self.metadata_prefix + name,
            {"payload": payload, "cached_at": self.clock()},
            self.metadata_cache_ttl,
        )

    async def discard_metadata(self, name: str) -> None:
        await self._discard(self.metadata_prefix + name)

    async def invalidate(self) -> None:
        """Drop the cached corpus."""
        await self._discard(self.corpus_key)
        logger.info("Corpus cache invalidated")

    async def close(self):
        """Close Redis connection."""
        try:
            await self.redis_client.aclose()
            logger.info("Corpus cache manager closed")
        except Exception as e:
            logger.warning("Failed to close cache manager", error=str(e))

    async def _read(self, key: str, ttl: int, cache_type: str) -> Optional[dict]:
        try:
            raw = await self.redis_client.get(key)
        except Exception as e:
            logger.warning("Failed to read cache", key=key, error=str(e))
            self._record(False, cache_type)
            return None

        if raw is None:
            logger.debug("Cache miss", key=key)
            self._record(False, cache_type)
            return None

        try:
            entry = json.loads(raw)
            cached_at = float(entry["cached_at"])
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Discarding corrupt cache entry", key=key, error=str(e))
            await self._discard(key)
            self._record(False, cache_type)
            return None

        age = self.clock() - cached_at
        if not math.isfinite(age) or not 0 <= age < ttl:
            logger.info("Cache entry expired", key=key, age_seconds=round(age, 1), ttl=ttl)
            await self._discard(key)
            self._record(False, cache_type)
            return None

        return entry

    async def _write(self, key: str, payload: dict, ttl: int) -> bool:
        try:
            await self.redis_client.set(key, json.dumps(payload), ex=ttl)
            return True
        except Exception as e:
            logger.warning("Failed to write cache", key=key, error=str(e))
            return False

    async def _discard(self, key: str) -> None:
        try:
            await self.redis_client.delete(key)
        except Exception as e:
            logger.warning("Failed to delete cache entry", key=key, error=str(e))

    def _record(self, hit: bool, cache_type: str) -> None:
        if self.metrics is None:
            return
        if hit:
            self.metrics.record_cache_hit(cache_type)
        else:
            self.metrics.record_cache_miss(cache_type)


def create_corpus_cache_manager(
    redis_url: str,
    corpus_cache_ttl: int = 86400,
    metadata_cache_ttl: int = 3600,
    key_prefix: str = "docsearch:",
    **kwargs,
) -> CorpusCacheManager:
    """Create corpus cache manager."""
    return CorpusCacheManager(
        redis_url=redis_url,
        corpus_cache_ttl=corpus_cache_ttl,
        metadata_cache_ttl=metadata_cache_ttl,
        key_prefix=key_prefix,
        **kwargs,
    )
