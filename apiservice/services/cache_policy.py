"""
CachePolicy - decides whether a request may be served from or written to cache,
and for how long.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Iterable


class CachePolicy(ABC):
    """Read/write gates and TTL selection."""

    @abstractmethod
    def can_read(self, method: str, use_cache: bool, force_refresh: bool) -> bool:
        ...

    @abstractmethod
    def can_write(self, method: str, status_code: int | None, use_cache: bool) -> bool:
        ...

    @abstractmethod
    def ttl_for(self, method: str, url: str) -> timedelta:
        ...


class FixedTtlCachePolicy(CachePolicy):
    """
    Applies one TTL to every write.

    Only methods in ``cacheable_methods`` (GET by default) are read or written,
    and only 2xx responses are ever stored.

    Usage:
        policy = FixedTtlCachePolicy(ttl=timedelta(minutes=5))

        # Allow explicitly requested POST caching too
        policy = FixedTtlCachePolicy(
            ttl=timedelta(minutes=1),
            cacheable_methods=("GET", "POST"),
        )
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=5),
        cacheable_methods: Iterable[str] = ("GET",),
    ):
        if ttl <= timedelta(0):
            raise ValueError("Cache TTL must be positive")
        self.ttl = ttl
        self.cacheable_methods = frozenset(m.upper() for m in cacheable_methods)

    def can_read(self, method: str, use_cache: bool, force_refresh: bool) -> bool:
        return use_cache and not force_refresh and self._is_cacheable_method(method)

    def can_write(self, method: str, status_code: int | None, use_cache: bool) -> bool:
        if not use_cache or status_code is None:
            return False
        # Errors are never cached
        if not 200 <= status_code < 300:
            return False
        return self._is_cacheable_method(method)

    def ttl_for(self, method: str, url: str) -> timedelta:
        return self.ttl

    def _is_cacheable_method(self, method: str) -> bool:
        return method.upper() in self.cacheable_methods
