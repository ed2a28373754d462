"""
Database models for the persistent response cache.
Uses SQLAlchemy 2.0+ declarative mapping.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    pass


class HttpCacheEntryDB(Base):
    """Cached raw response bodies keyed by request identity"""

    __tablename__ = "http_cache_entries"

    key: Mapped[str] = mapped_column(String(2000), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    stored_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<HttpCacheEntry(key={self.key[:50]}, expires_at={self.expires_at})>"
