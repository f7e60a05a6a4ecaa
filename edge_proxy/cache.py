"""Key-value response cache with TTL support."""

import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as aioredis
import structlog

from edge_proxy.errors import CacheReadError, CacheWriteError

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 86400  # 24 hours


class RedisStore:
    """Redis-backed key-value store."""

    name = "redis"

    def __init__(self, redis_url: str = "redis://localhost:6379/0"):
        """Initialize store.

        Args:
            redis_url: Redis connection URL
        """
        self.redis_url = redis_url

        # Redis client (lazy initialization)
        self._redis: Optional[aioredis.Redis] = None

    async def _get_redis(self) -> aioredis.Redis:
        """Get or initialize Redis connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self.redis_url, encoding="utf-8", decode_responses=True
            )
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        redis = await self._get_redis()
        return await redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        redis = await self._get_redis()
        await redis.setex(key, ttl_seconds, value)

    async def ping(self) -> bool:
        redis = await self._get_redis()
        return bool(await redis.ping())

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class MemoryStore:
    """In-process store with per-key expiry, for tests and local runs."""

    name = "memory"

    def __init__(self) -> None:
        self._data: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if time.monotonic() >= expires_at:
            # Expired
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, time.monotonic() + ttl_seconds)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class ResponseCache:
    """Typed lookup/store facade over a key-value store.

    Reads fail closed by default: a store error surfaces as ``CacheReadError``
    instead of a silent miss, because a false miss would charge the upstream
    again. ``fail_open=True`` restores miss-on-error semantics.

    Writes are best-effort: any failure is logged and reported as ``False``.
    """

    def __init__(
        self,
        store: Any,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        fail_open: bool = False,
    ):
        """Initialize cache facade.

        Args:
            store: Object with async ``get(key)`` and ``set(key, value, ttl_seconds)``
            ttl_seconds: Expiry applied to every write
            fail_open: Treat read errors as misses
        """
        self.backend = store
        self.ttl_seconds = ttl_seconds
        self.fail_open = fail_open

        # Statistics
        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "errors": 0,
        }

    async def lookup(self, key: str) -> Optional[str]:
        """Return the cached body for ``key`` or None on a miss.

        Raises:
            CacheReadError: If the store fails and the cache is not fail-open
        """
        try:
            cached = await self.backend.get(key)
        except Exception as e:
            self.stats["errors"] += 1
            logger.error("cache_read_failed", key=key, error=str(e))
            if self.fail_open:
                self.stats["misses"] += 1
                return None
            raise CacheReadError(f"Cache read failed: {e}") from e

        if cached is None:
            self.stats["misses"] += 1
            logger.debug("cache_miss", key=key)
            return None

        self.stats["hits"] += 1
        logger.debug("cache_hit", key=key)
        return cached

    async def store(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """Write ``value`` under ``key``. Never raises.

        Returns:
            True if cached successfully
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            await self._write(key, value, ttl)
        except CacheWriteError as e:
            self.stats["errors"] += 1
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False

        self.stats["writes"] += 1
        logger.info("cache_written", key=key, ttl_seconds=ttl)
        return True

    async def _write(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.backend.set(key, value, ttl)
        except Exception as e:
            raise CacheWriteError(f"Cache write failed: {e}") from e

    async def is_healthy(self) -> bool:
        try:
            return await self.backend.ping()
        except Exception as e:
            logger.warning("cache_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.backend.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Statistics dictionary
        """
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = self.stats["hits"] / total_requests if total_requests > 0 else 0.0

        return {
            **self.stats,
            "total_requests": total_requests,
            "hit_rate": round(hit_rate, 3),
            "ttl_seconds": self.ttl_seconds,
            "backend": getattr(self.backend, "name", type(self.backend).__name__),
        }


def create_store(backend: str, redis_url: str):
    """Build the configured key-value store."""
    if backend == "memory":
        return MemoryStore()
    return RedisStore(redis_url=redis_url)
