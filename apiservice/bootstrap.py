"""
Composition root - builds the cache and the ApiService from Settings.
"""

from datetime import timedelta

import httpx
from loguru import logger

from apiservice.datastore.cache_store import DatabaseCacheStore
from apiservice.datastore.engine import CacheDatabase
from apiservice.services.cache import CacheManager, CacheStore, MemoryCacheStore
from apiservice.services.cache_keys import get_key_strategy
from apiservice.services.cache_policy import FixedTtlCachePolicy
from apiservice.services.client import ApiService
from apiservice.services.tokens import InMemoryTokenStore, TokenStore
from apiservice.settings import Settings

CACHE_BACKENDS = ("memory", "database", "none")


def build_cache_manager(settings: Settings) -> CacheManager | None:
    """Cache manager for the configured backend, None when caching is off."""
    backend = settings.cache_backend.lower()
    if backend not in CACHE_BACKENDS:
        raise ValueError(
            f"Unknown cache backend '{settings.cache_backend}', "
            f"expected one of {CACHE_BACKENDS}"
        )
    if backend == "none":
        logger.info("Response cache disabled")
        return None

    store: CacheStore
    if backend == "database":
        store = DatabaseCacheStore(
            CacheDatabase(
                settings.cache_database_url,
                echo=settings.cache_database_echo,
            ),
            debug=settings.debug,
        )
    else:
        store = MemoryCacheStore(max_size=settings.cache_max_size, debug=settings.debug)

    logger.info(
        f"Response cache: backend={backend}, ttl={settings.cache_ttl_seconds}s, "
        f"keys={settings.cache_key_strategy}"
    )
    return CacheManager(
        store=store,
        policy=FixedTtlCachePolicy(ttl=timedelta(seconds=settings.cache_ttl_seconds)),
        key_strategy=get_key_strategy(settings.cache_key_strategy),
        debug=settings.debug,
    )


def build_api_service(
    settings: Settings,
    token_store: TokenStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ApiService:
    """Wire an ApiService and its collaborators from settings."""
    return ApiService(
        token_store=token_store or InMemoryTokenStore(),
        refresh_url=settings.refresh_session_url,
        cache=build_cache_manager(settings),
        http_client=http_client,
        timeout=settings.request_timeout,
        download_dir=settings.download_dir,
        coalesce_requests=settings.coalesce_requests,
        debug=settings.debug,
    )
