"""
Token storage used by ApiService to authenticate requests.

Reads are synchronous so headers can be built without awaiting; writes are
async so persistent implementations can do I/O.
"""

from typing import Protocol, runtime_checkable

from loguru import logger


@runtime_checkable
class TokenStore(Protocol):
    """Narrow interface ApiService consumes for credentials."""

    def read_access_token(self) -> str | None: ...

    def read_refresh_token(self) -> str | None: ...

    async def write_access_token(self, token: str) -> None: ...

    async def write_refresh_token(self, token: str) -> None: ...

    async def clear_tokens(self) -> None: ...


class InMemoryTokenStore:
    """Process-local token store. Tokens are lost when the process exits."""

    def __init__(
        self,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ):
        self._access_token = access_token
        self._refresh_token = refresh_token

    def read_access_token(self) -> str | None:
        return self._access_token

    def read_refresh_token(self) -> str | None:
        return self._refresh_token

    async def write_access_token(self, token: str) -> None:
        self._access_token = token

    async def write_refresh_token(self, token: str) -> None:
        self._refresh_token = token

    async def clear_tokens(self) -> None:
        self._access_token = None
        self._refresh_token = None
        logger.debug("Cleared stored tokens")
