"""
ResponseCoalescer - shares one in-flight GET between concurrent callers.

ApiService only uses this when constructed with ``coalesce_requests=True``;
keys are the default cache keys of cacheable GETs.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class ResponseCoalescer:
    """
    Runs at most one fetch per key at a time.

    Usage:
        coalescer = ResponseCoalescer()
        response = await coalescer.fetch("GET https://api/x", send_request)

    Callers arriving while a fetch for their key is running wait for that
    fetch instead of starting their own. Cancelling one waiter leaves the
    fetch running for the others; errors reach every waiter.
    """

    def __init__(self, debug: bool = False):
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self._debug = debug

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def fetch(self, key: str, start: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.create_task(start())
            self._pending[key] = task
            task.add_done_callback(lambda done: self._release(key, done))
            self._log(f"START: {key[:50]}...")
        else:
            self._log(f"JOIN: {key[:50]}...")

        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if task.cancelled():
            self._log(f"CANCELLED: {key[:50]}...")
        elif task.exception() is not None:
            self._log(f"FAILED: {key[:50]}... ({task.exception()!r})")
        else:
            self._log(f"DONE: {key[:50]}...")

    async def cancel_all(self) -> int:
        """Cancel every running fetch. Returns how many were cancelled."""
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            self._log(f"CANCEL_ALL: {len(tasks)} fetches cancelled")
        return len(tasks)

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[ResponseCoalescer] {message}")
