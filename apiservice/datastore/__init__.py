"""
Persistent cache storage through SQLAlchemy.
"""

from apiservice.datastore.cache_store import DatabaseCacheStore
from apiservice.datastore.engine import CacheDatabase

__all__ = ["CacheDatabase", "DatabaseCacheStore"]
