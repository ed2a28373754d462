import pytest

from apiservice.bootstrap import build_api_service, build_cache_manager
from apiservice.datastore.cache_store import DatabaseCacheStore
from apiservice.services.cache import MemoryCacheStore
from apiservice.services.cache_keys import HeaderAwareCacheKeyStrategy
from apiservice.services.tokens import InMemoryTokenStore
from apiservice.settings import Settings


def test_settings_read_aliases() -> None:
    settings = Settings.model_validate(
        {"API_BASE_URL": "https://api.example.com", "CACHE_TTL_SECONDS": "60"}
    )

    assert settings.cache_ttl_seconds == 60
    assert settings.request_timeout == 120.0
    assert settings.sign_in_url == "https://api.example.com/signin"
    assert settings.sign_up_url == "https://api.example.com/signup"
    assert settings.refresh_session_url == "https://api.example.com/token/refresh"
    assert settings.grades_url == "https://api.example.com/folders"


def test_no_cache_backend_disables_cache() -> None:
    assert build_cache_manager(Settings(cache_backend="none")) is None


def test_memory_backend() -> None:
    manager = build_cache_manager(
        Settings(cache_backend="memory", cache_key_strategy="header_aware")
    )

    assert isinstance(manager.store, MemoryCacheStore)
    assert isinstance(manager.key_strategy, HeaderAwareCacheKeyStrategy)


def test_database_backend(tmp_path) -> None:
    manager = build_cache_manager(
        Settings(
            cache_backend="database",
            cache_database_url=f"sqlite+aiosqlite:///{tmp_path / 'c.db'}",
        )
    )

    assert isinstance(manager.store, DatabaseCacheStore)


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValueError):
        build_cache_manager(Settings(cache_backend="redis"))


def test_build_api_service_wires_settings() -> None:
    tokens = InMemoryTokenStore(access_token="t")
    service = build_api_service(
        Settings(api_base_url="https://api.example.com", cache_backend="none"),
        token_store=tokens,
    )

    assert service.refresh_url == "https://api.example.com/token/refresh"
    assert service.token_store is tokens
    assert service.cache is None
