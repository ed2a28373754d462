"""
Database engine management for the persistent cache.
Uses the SQLAlchemy async engine, SQLite (aiosqlite) by default.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from apiservice.datastore.models import Base


class CacheDatabase:
    """
    Owns one async engine and its session factory.

    Usage:
        db = CacheDatabase("sqlite+aiosqlite:///./api_cache.db")
        await db.init()
        async with db.session() as session:
            ...
        await db.close()
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    async def init(self) -> None:
        """Create the engine, the session factory and the tables (once)"""
        if self.is_initialized:
            return

        async with self._init_lock:
            # Another caller may have finished while we waited
            if self.is_initialized:
                return

            engine = create_async_engine(self.database_url, echo=self.echo)
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except Exception:
                await engine.dispose()
                raise

            self._engine = engine
            self._session_factory = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.debug(f"Cache database initialized: {self.database_url}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, committing on success and rolling back on error"""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose of the engine"""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
