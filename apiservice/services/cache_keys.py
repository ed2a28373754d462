"""
Cache key strategies - map request identity to a lookup key.

Strategies are pure: no network, no storage.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping


class CacheKeyStrategy(ABC):
    """Maps (method, url, query, headers) to a deterministic cache key."""

    @abstractmethod
    def build_key(
        self,
        url: str,
        query: Mapping[str, Any] | None = None,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Build the cache key for a request."""
        ...


class DefaultCacheKeyStrategy(CacheKeyStrategy):
    """
    Builds keys as ``METHOD URL?sorted_query``.

    Headers are ignored so keys stay stable across sessions and locales.

    Example:
        DefaultCacheKeyStrategy().build_key("https://api/x", {"b": 2, "a": 1})
        # => "GET https://api/x?a=1&b=2"
    """

    def build_key(
        self,
        url: str,
        query: Mapping[str, Any] | None = None,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> str:
        key = f"{method.upper()} {url}"
        if query:
            sorted_query = "&".join(f"{k}={v}" for k, v in sorted(query.items()))
            key = f"{key}?{sorted_query}"
        return key


class HeaderAwareCacheKeyStrategy(DefaultCacheKeyStrategy):
    """
    Default key plus ``Accept-Language`` and whether the request is
    authenticated, so cached bodies never cross locales or sessions.

    Example key:
        "GET https://api/x?a=1 |lang=fr|auth=1"
    """

    def build_key(
        self,
        url: str,
        query: Mapping[str, Any] | None = None,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> str:
        base = super().build_key(url, query, method=method, headers=headers)
        lowered = {k.lower(): v for k, v in (headers or {}).items()}
        language = lowered.get("accept-language", "")
        has_auth = 1 if lowered.get("authorization") else 0
        return f"{base} |lang={language}|auth={has_auth}"


def get_key_strategy(name: str) -> CacheKeyStrategy:
    """Resolve a strategy by its settings name."""
    strategies: dict[str, type[CacheKeyStrategy]] = {
        "default": DefaultCacheKeyStrategy,
        "header_aware": HeaderAwareCacheKeyStrategy,
    }
    try:
        return strategies[name]()
    except KeyError:
        raise ValueError(
            f"Unknown cache key strategy '{name}', "
            f"expected one of {sorted(strategies)}"
        ) from None
