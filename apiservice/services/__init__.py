"""
Service layer - HTTP client, auth refresh and response caching.

Provides:
- ApiService: HTTP client with one-shot refresh and typed errors
- CacheManager: Store + key strategy + policy, failures degrade to a miss
- CacheKeyStrategy / CachePolicy: Pluggable keying and cache rules
- TokenStore: Credentials consumed by ApiService
- ResponseCoalescer: Optional sharing of concurrent identical GETs
"""

from apiservice.services.errors import (
    ApiError,
    CacheError,
    ErrorKind,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    UnauthorizedError,
    UnexpectedStatusError,
)
from apiservice.services.cache import (
    CacheEntry,
    CacheManager,
    CacheStats,
    CacheStore,
    MemoryCacheStore,
)
from apiservice.services.cache_keys import (
    CacheKeyStrategy,
    DefaultCacheKeyStrategy,
    HeaderAwareCacheKeyStrategy,
)
from apiservice.services.cache_policy import CachePolicy, FixedTtlCachePolicy
from apiservice.services.tokens import InMemoryTokenStore, TokenStore
from apiservice.services.coalescer import ResponseCoalescer
from apiservice.services.client import ApiResponse, ApiService, AttemptState

__all__ = [
    # Errors
    "ApiError",
    "CacheError",
    "ErrorKind",
    "MalformedResponseError",
    "NetworkError",
    "NotFoundError",
    "RequestTimeoutError",
    "UnauthorizedError",
    "UnexpectedStatusError",
    # Cache
    "CacheEntry",
    "CacheManager",
    "CacheStats",
    "CacheStore",
    "MemoryCacheStore",
    "CacheKeyStrategy",
    "DefaultCacheKeyStrategy",
    "HeaderAwareCacheKeyStrategy",
    "CachePolicy",
    "FixedTtlCachePolicy",
    # Tokens
    "InMemoryTokenStore",
    "TokenStore",
    # Coalescing
    "ResponseCoalescer",
    # Client
    "ApiResponse",
    "ApiService",
    "AttemptState",
]
