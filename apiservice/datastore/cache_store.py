"""
DatabaseCacheStore - CacheStore persisted through SQLAlchemy.

Survives process restarts. Expiry is enforced in the query, so an expired row
reads exactly like a missing one even before it is swept.
"""

from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from apiservice.datastore.engine import CacheDatabase
from apiservice.datastore.repositories import HttpCacheRepository
from apiservice.services.cache import CacheStore, Clock
from apiservice.services.errors import CacheError


class DatabaseCacheStore(CacheStore):
    """
    Cache store backed by a SQL database.

    Usage:
        store = DatabaseCacheStore(CacheDatabase("sqlite+aiosqlite:///./cache.db"))
        await store.set("GET https://api/x", "[]", timedelta(minutes=5))
        raw = await store.get("GET https://api/x")
        await store.close()

    Tables are created lazily on first use.
    """

    def __init__(
        self,
        database: CacheDatabase,
        clock: Clock = datetime.now,
        debug: bool = False,
    ):
        self._database = database
        self._clock = clock
        self._debug = debug

    async def _ensure_ready(self) -> None:
        if not self._database.is_initialized:
            await self._database.init()

    async def get(self, key: str) -> str | None:
        try:
            await self._ensure_ready()
            async with self._database.session() as session:
                entry = await HttpCacheRepository(session).get_valid(key, self._clock())
        except SQLAlchemyError as e:
            raise CacheError(f"Cache lookup failed: {e}") from e

        self._log(f"{'HIT' if entry else 'MISS'}: {key[:50]}...")
        return entry.value if entry else None

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        now = self._clock()
        try:
            await self._ensure_ready()
            async with self._database.session() as session:
                await HttpCacheRepository(session).upsert(
                    key, value, stored_at=now, expires_at=now + ttl
                )
        except SQLAlchemyError as e:
            raise CacheError(f"Cache write failed: {e}") from e

        self._log(f"SET: {key[:50]}... (TTL: {ttl.total_seconds()}s)")

    async def remove(self, key: str) -> bool:
        try:
            await self._ensure_ready()
            async with self._database.session() as session:
                return await HttpCacheRepository(session).delete(key)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache delete failed: {e}") from e

    async def clear(self) -> None:
        try:
            await self._ensure_ready()
            async with self._database.session() as session:
                count = await HttpCacheRepository(session).delete_all()
        except SQLAlchemyError as e:
            raise CacheError(f"Cache clear failed: {e}") from e

        self._log(f"CLEAR: {count} entries removed")

    async def cleanup_expired(self) -> int:
        """Remove all expired rows. Returns count of removed rows."""
        try:
            await self._ensure_ready()
            async with self._database.session() as session:
                return await HttpCacheRepository(session).delete_expired(self._clock())
        except SQLAlchemyError as e:
            raise CacheError(f"Cache cleanup failed: {e}") from e

    async def close(self) -> None:
        await self._database.close()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[DatabaseCacheStore] {message}")
