"""
Response cache - storage backends and the CacheManager that fronts them.

Features:
- CacheStore interface over raw response strings with expiry metadata
- Memory-based store with bounded size and oldest-first eviction
- CacheManager combining a store, a key strategy and a policy
- Cache failures degrade to a miss, they never reach the caller
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping

from loguru import logger

from apiservice.services.cache_keys import CacheKeyStrategy, DefaultCacheKeyStrategy
from apiservice.services.cache_policy import CachePolicy, FixedTtlCachePolicy

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class CacheEntry:
    """A single cached response body with expiry metadata."""

    key: str
    value: str
    stored_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """An entry is unreadable from its expiry instant onwards."""
        return now >= self.expires_at


class CacheStore(ABC):
    """
    Key to raw-string storage with expiration.

    Implementations must treat an expired entry exactly like a missing one.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        ...

    @abstractmethod
    async def remove(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""


class MemoryCacheStore(CacheStore):
    """
    In-process cache store.

    Expiry is checked lazily on read. When ``max_size`` is reached the entry
    written longest ago is evicted.

    Usage:
        store = MemoryCacheStore(max_size=100)
        await store.set("GET https://api/x", '{"a": 1}', timedelta(minutes=5))
        raw = await store.get("GET https://api/x")
    """

    def __init__(
        self,
        max_size: int = 100,
        clock: Clock = datetime.now,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:50]}...")
                return None

            if entry.is_expired(self._clock()):
                del self._memory[key]
                self._stats.misses += 1
                self._log(f"EXPIRED: {key[:50]}...")
                return None

            self._stats.hits += 1
            self._log(f"HIT: {key[:50]}...")
            return entry.value

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        now = self._clock()
        entry = CacheEntry(key=key, value=value, stored_at=now, expires_at=now + ttl)

        async with self._lock:
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_oldest()

            self._memory[key] = entry
            self._log(f"SET: {key[:50]}... (TTL: {ttl.total_seconds()}s)")

    async def remove(self, key: str) -> bool:
        async with self._lock:
            if key in self._memory:
                del self._memory[key]
                self._log(f"DELETE: {key[:50]}...")
                return True
            return False

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            self._log(f"CLEAR: {count} entries removed")

    async def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        async with self._lock:
            now = self._clock()
            expired_keys = [k for k, v in self._memory.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._memory[key]

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    def _evict_oldest(self) -> None:
        """Evict the entry written longest ago. Caller holds the lock."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].stored_at,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}...")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[MemoryCacheStore] {message}")


class CacheManager:
    """
    Orchestrates a CacheStore, a CacheKeyStrategy and a CachePolicy.

    Caching is an optimisation only: every store failure is logged and turned
    into a miss (on read) or a skipped write.

    Usage:
        cache = CacheManager(
            store=MemoryCacheStore(),
            policy=FixedTtlCachePolicy(ttl=timedelta(minutes=5)),
        )

        raw = await cache.try_read("GET", url, {"page": 1})
        if raw is None:
            response = await fetch()
            await cache.try_write(
                "GET", url, {"page": 1},
                status_code=response.status_code,
                body_string=response.text,
            )
    """

    def __init__(
        self,
        store: CacheStore,
        policy: CachePolicy | None = None,
        key_strategy: CacheKeyStrategy | None = None,
        debug: bool = False,
    ):
        self.store = store
        self.policy = policy or FixedTtlCachePolicy()
        self.key_strategy = key_strategy or DefaultCacheKeyStrategy()
        self._debug = debug

    def build_key(
        self,
        method: str,
        url: str,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        return self.key_strategy.build_key(url, query, method=method, headers=headers)

    async def try_read(
        self,
        method: str,
        url: str,
        query: Mapping[str, Any] | None = None,
        force_refresh: bool = False,
        headers: Mapping[str, str] | None = None,
        use_cache: bool = True,
    ) -> str | None:
        """
        Return the cached raw body for this request, or None.

        Args:
            method: HTTP method, used for keying and policy
            url: Full request URL
            query: Query parameters
            force_refresh: Skip the cache read
            headers: Request headers (only used by header-aware strategies)
            use_cache: Caller intent to use the cache

        Returns:
            Raw response text on a hit, None on a miss or any cache failure
        """
        if not self.policy.can_read(method, use_cache, force_refresh):
            return None

        try:
            key = self.build_key(method, url, query, headers)
            cached = await self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {method} {url}, treating as miss: {e}")
            return None

        self._log(f"{'HIT' if cached is not None else 'MISS'}: {key[:80]}")
        return cached

    async def try_write(
        self,
        method: str,
        url: str,
        query: Mapping[str, Any] | None = None,
        status_code: int | None = None,
        body_string: str | None = None,
        headers: Mapping[str, str] | None = None,
        use_cache: bool = True,
    ) -> None:
        """Store a response body if the policy allows it. Never raises."""
        if body_string is None:
            return
        if not self.policy.can_write(method, status_code, use_cache):
            self._log(f"SKIP WRITE: {method} {url} (status {status_code})")
            return

        try:
            key = self.build_key(method, url, query, headers)
            ttl = self.policy.ttl_for(method, url)
            await self.store.set(key, body_string, ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {method} {url}, skipping: {e}")
            return

        self._log(f"WRITE: {key[:80]} (TTL: {ttl.total_seconds()}s)")

    async def invalidate(
        self,
        method: str,
        url: str,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bool:
        """Drop the entry for one request. Returns whether one was removed."""
        try:
            return await self.store.remove(self.build_key(method, url, query, headers))
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {method} {url}: {e}")
            return False

    async def clear(self) -> None:
        """Drop every entry."""
        try:
            await self.store.clear()
        except Exception as e:
            logger.warning(f"Cache clear failed: {e}")

    async def close(self) -> None:
        await self.store.close()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
