import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache
from redis.asyncio import Redis, RedisError

from taskflow.core.config import Settings

logger = logging.getLogger(__name__)


class CacheLayer:
    """
    Two-tier read cache for single-task lookups.

    L1: Process-local TTLCache (fast, limited size)
    L2: Redis (shared between workers), only when a DSN is configured

    Features:
    - Stampede protection with per-key locks
    - Graceful degradation to L1 when Redis is unavailable
    - Automatic key namespacing
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._redis: Redis | None = None
        self.l1: TTLCache = TTLCache(
            maxsize=settings.l1_maxsize, ttl=settings.l1_ttl_seconds
        )
        # TTL exceeds any sane DB call so a lock never expires while held
        self._locks: TTLCache = TTLCache(maxsize=10_000, ttl=300)
        self._initialized = False

        self.stats = {
            "l1_hits": 0,
            "l2_hits": 0,
            "misses": 0,
            "errors": 0,
        }

    @property
    def has_redis(self) -> bool:
        return self._redis is not None

    async def init_cache(self):
        """Connect the Redis tier if one is configured."""
        if self._initialized:
            return
        self._initialized = True

        if not self._settings.redis_dsn:
            logger.info("Cache layer initialized (L1 only)")
            return

        try:
            self._redis = Redis.from_url(
                self._settings.redis_dsn,
                encoding="utf-8",
                decode_responses=True,
                max_connections=self._settings.redis_pool_size,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
            )
            await self._redis.ping()
            logger.info("Cache layer initialized (L1 + Redis)")
        except (RedisError, OSError) as e:
            logger.error(f"Redis initialization failed, continuing with L1 only: {e}")
            self._redis = None

    def _key(self, key: str) -> str:
        return f"{self._settings.cache_namespace}{key}"

    def _lock_for(self, key: str) -> asyncio.Lock:
        # setdefault hands every concurrent caller the same lock object
        return self._locks.setdefault(key, asyncio.Lock())

    async def _l2_get(self, key: str) -> Any:
        if not self._redis:
            return None
        try:
            raw = await self._redis.get(self._key(key))
        except RedisError as e:
            logger.error(f"Redis GET error for {key}: {e}")
            self.stats["errors"] += 1
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Dropping undecodable cache entry {key}")
            return None

    async def get(
        self,
        key: str,
        loader: Optional[Callable[[], Awaitable[Any]]] = None,
        l2_ttl: Optional[int] = None,
    ):
        """
        Retrieve value from cache hierarchy: L1 -> L2 -> loader.

        Values must be JSON-serializable. ``None`` from the loader is never
        cached, so lookups of missing tasks always reach the database.
        """
        await self.init_cache()
        ns_key = self._key(key)

        if ns_key in self.l1:
            self.stats["l1_hits"] += 1
            logger.debug("L1 hit %s", key)
            return self.l1[ns_key]

        value = await self._l2_get(key)
        if value is not None:
            self.stats["l2_hits"] += 1
            logger.debug("L2 hit %s", key)
            self.l1[ns_key] = value
            return value

        if loader is None:
            self.stats["misses"] += 1
            return None

        async with self._lock_for(key):
            # another waiter may have filled the cache meanwhile
            if ns_key in self.l1:
                self.stats["l1_hits"] += 1
                return self.l1[ns_key]

            self.stats["misses"] += 1
            logger.debug("Loading %s from source", key)
            value = await loader()
            if value is None:
                return None

            await self.set(key, value, l2_ttl)
            return value

    async def set(self, key: str, value: Any, l2_ttl: Optional[int] = None):
        """Store a value in both layers."""
        await self.init_cache()
        self.l1[self._key(key)] = value

        if self._redis:
            try:
                data = json.dumps(value, default=str)
                await self._redis.set(
                    self._key(key), data, ex=l2_ttl or self._settings.l2_ttl_seconds
                )
            except RedisError as e:
                logger.error(f"Redis SET error for {key}: {e}")
                self.stats["errors"] += 1

    async def delete(self, key: str):
        """
        Delete a key from both cache layers.

        Redis is always cleared too, otherwise other workers keep serving
        the stale task.
        """
        await self.init_cache()
        self.l1.pop(self._key(key), None)

        if self._redis:
            try:
                await self._redis.delete(self._key(key))
            except RedisError as e:
                logger.error(f"Redis DELETE error for {key}: {e}")
                self.stats["errors"] += 1

    async def close(self):
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis: {e}")
            self._redis = None

    def get_stats(self) -> dict:
        total = self.stats["l1_hits"] + self.stats["l2_hits"] + self.stats["misses"]
        return {
            **self.stats,
            "l1_size": len(self.l1),
            "l1_maxsize": self.l1.maxsize,
            "redis": self.has_redis,
            "hit_rate": (
                (self.stats["l1_hits"] + self.stats["l2_hits"]) / total
                if total > 0
                else 0
            ),
        }
