"""
Repository layer - data access for cached responses.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from apiservice.datastore.models import HttpCacheEntryDB


class HttpCacheRepository:
    """Repository for cached response bodies"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_valid(self, key: str, now: datetime) -> HttpCacheEntryDB | None:
        """Return the entry for key unless it has expired at `now`"""
        result = await self.session.execute(
            select(HttpCacheEntryDB).where(
                HttpCacheEntryDB.key == key,
                HttpCacheEntryDB.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self, key: str, value: str, stored_at: datetime, expires_at: datetime
    ) -> None:
        """Replace any entry stored under key"""
        await self.session.execute(
            delete(HttpCacheEntryDB).where(HttpCacheEntryDB.key == key)
        )
        self.session.add(
            HttpCacheEntryDB(
                key=key,
                value=value,
                stored_at=stored_at,
                expires_at=expires_at,
            )
        )
        await self.session.flush()

    async def delete(self, key: str) -> bool:
        result = await self.session.execute(
            delete(HttpCacheEntryDB).where(HttpCacheEntryDB.key == key)
        )
        return (result.rowcount or 0) > 0

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(HttpCacheEntryDB))
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        """Remove every entry that has expired at `now`"""
        result = await self.session.execute(
            delete(HttpCacheEntryDB).where(HttpCacheEntryDB.expires_at <= now)
        )
        deleted = result.rowcount or 0
        if deleted > 0:
            logger.debug(f"Cleaned up {deleted} expired cache entries")
        return deleted
