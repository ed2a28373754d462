import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from apiservice.datastore import engine as engine_module
from apiservice.datastore.cache_store import DatabaseCacheStore
from apiservice.datastore.engine import CacheDatabase
from apiservice.services.cache import CacheManager

TTL = timedelta(minutes=5)


def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}"


@pytest_asyncio.fixture
async def store(tmp_path, clock):
    store = DatabaseCacheStore(CacheDatabase(database_url(tmp_path)), clock=clock)
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_round_trip(store) -> None:
    await store.set("GET https://api.test/items", '[{"id": 1}]', TTL)

    assert await store.get("GET https://api.test/items") == '[{"id": 1}]'
    assert await store.get("GET https://api.test/other") is None


@pytest.mark.asyncio
async def test_expiry_boundary(store, clock) -> None:
    await store.set("k", "body", TTL)

    clock.advance(seconds=TTL.total_seconds(), milliseconds=-1)
    assert await store.get("k") == "body"

    clock.advance(milliseconds=2)
    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_overwrite_replaces_value_and_expiry(store, clock) -> None:
    await store.set("k", "old", TTL)
    clock.advance(minutes=4)
    await store.set("k", "new", TTL)
    clock.advance(minutes=4)

    assert await store.get("k") == "new"


@pytest.mark.asyncio
async def test_remove_and_clear(store) -> None:
    await store.set("a", "1", TTL)
    await store.set("b", "2", TTL)

    assert await store.remove("a") is True
    assert await store.remove("a") is False

    await store.clear()
    assert await store.get("b") is None


@pytest.mark.asyncio
async def test_cleanup_expired(store, clock) -> None:
    await store.set("short", "1", timedelta(seconds=10))
    await store.set("long", "2", timedelta(hours=1))

    clock.advance(minutes=1)

    assert await store.cleanup_expired() == 1
    assert await store.get("long") == "2"


@pytest.mark.asyncio
async def test_entries_survive_restart(tmp_path, clock) -> None:
    first = DatabaseCacheStore(CacheDatabase(database_url(tmp_path)), clock=clock)
    await first.set("k", "persisted", TTL)
    await first.close()

    second = DatabaseCacheStore(CacheDatabase(database_url(tmp_path)), clock=clock)
    try:
        assert await second.get("k") == "persisted"
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_manager_over_database_store(store) -> None:
    manager = CacheManager(store)

    await manager.try_write(
        "GET", "https://api.test/items", {"page": 1}, status_code=200, body_string="[]"
    )
    await manager.try_write(
        "GET", "https://api.test/items", {"page": 2}, status_code=500, body_string="err"
    )

    assert await manager.try_read("GET", "https://api.test/items", {"page": 1}) == "[]"
    assert await manager.try_read("GET", "https://api.test/items", {"page": 2}) is None


@pytest.mark.asyncio
async def test_manager_degrades_when_database_unreachable(tmp_path) -> None:
    missing_dir = tmp_path / "does" / "not" / "exist"
    manager = CacheManager(
        DatabaseCacheStore(CacheDatabase(f"sqlite+aiosqlite:///{missing_dir / 'c.db'}"))
    )

    await manager.try_write("GET", "https://api.test/x", status_code=200, body_string="x")
    assert await manager.try_read("GET", "https://api.test/x") is None
    await manager.close()


@pytest.mark.asyncio
async def test_concurrent_first_writes_share_one_initialization(tmp_path, clock, monkeypatch) -> None:
    engines = []
    real_create_engine = engine_module.create_async_engine

    def counting_create_engine(*args, **kwargs):
        created = real_create_engine(*args, **kwargs)
        engines.append(created)
        return created

    monkeypatch.setattr(engine_module, "create_async_engine", counting_create_engine)
    store = DatabaseCacheStore(CacheDatabase(database_url(tmp_path)), clock=clock)
    manager = CacheManager(store)
    urls = [f"https://api.test/items/{i}" for i in range(5)]

    try:
        await asyncio.gather(
            *(
                manager.try_write("GET", url, status_code=200, body_string=url)
                for url in urls
            )
        )

        assert len(engines) == 1
        assert [await manager.try_read("GET", url) for url in urls] == urls
    finally:
        await store.close()
