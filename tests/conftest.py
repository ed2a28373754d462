"""Pytest configuration and fixtures for apiservice tests."""

from datetime import datetime, timedelta
from typing import Any

import httpx
import pytest
import pytest_asyncio

from apiservice.services.cache import CacheManager, MemoryCacheStore
from apiservice.services.cache_policy import FixedTtlCachePolicy
from apiservice.services.client import ApiService
from apiservice.services.tokens import InMemoryTokenStore
from apiservice.settings import Settings

BASE_URL = "https://api.test"
REFRESH_URL = f"{BASE_URL}/token/refresh"


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeBackend:
    """
    Route table for httpx.MockTransport.

    Each route holds a queue of replies; the last reply repeats once the
    queue is down to one. A reply is ``(status, payload)`` where payload is a
    dict/list (sent as JSON), str or bytes, or an exception to raise.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[httpx.Request] = []

    def add(self, method: str, path: str, *replies: Any) -> None:
        self.routes[(method, path)] = list(replies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "no route"})

        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply

        status, payload = reply
        if isinstance(payload, bytes):
            return httpx.Response(status, content=payload)
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.calls if r.method == method and r.url.path == path
        )

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.method == method and r.url.path == path]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore(access_token="old-access", refresh_token="refresh-1")


@pytest.fixture
def cache_manager(clock: FakeClock) -> CacheManager:
    return CacheManager(
        store=MemoryCacheStore(max_size=50, clock=clock),
        policy=FixedTtlCachePolicy(ttl=timedelta(minutes=5)),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=BASE_URL, cache_backend="memory")


@pytest_asyncio.fixture
async def api(backend: FakeBackend, token_store: InMemoryTokenStore, cache_manager: CacheManager):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))
    service = ApiService(
        token_store=token_store,
        refresh_url=REFRESH_URL,
        cache=cache_manager,
        http_client=http_client,
    )
    yield service
    await service.close()
    await http_client.aclose()
