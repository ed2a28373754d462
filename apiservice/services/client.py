"""
ApiService - async HTTP client with auth refresh and response caching.

Combines:
- Bearer authorization headers built from a TokenStore
- One-shot 401 refresh with a single retry of the original request
- Typed error mapping that never fails while reading an error body
- Optional CacheManager for GET (or opted-in) responses
- Redacted request logging that is compiled out under ``python -O``
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

import httpx
from loguru import logger

from apiservice.services.cache import CacheManager
from apiservice.services.cache_keys import DefaultCacheKeyStrategy
from apiservice.services.decoding import Decoder, decode_body, parse_json_or_none
from apiservice.services.coalescer import ResponseCoalescer
from apiservice.services.errors import (
    ApiError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    UnauthorizedError,
    UnexpectedStatusError,
)
from apiservice.services.tokens import TokenStore

T = TypeVar("T")

REDACTED_AUTHORIZATION = "Bearer <redacted>"
LOG_PREVIEW_LENGTH = 200


class AttemptState(str, Enum):
    """Where a request is in the refresh-and-retry sequence."""

    FIRST_ATTEMPT = "FIRST_ATTEMPT"
    RETRIED_AFTER_REFRESH = "RETRIED_AFTER_REFRESH"


@dataclass
class ApiResponse(Generic[T]):
    """Result of an ApiService call."""

    status_code: int
    body: T | None
    body_string: str | None
    from_cache: bool = False
    url: str | None = None
    request_headers: dict[str, str] = field(default_factory=dict)

    @property
    def has_error(self) -> bool:
        return not 200 <= self.status_code < 300


class ApiService:
    """
    HTTP client for authenticated JSON APIs.

    Usage:
        service = ApiService(
            token_store=InMemoryTokenStore(),
            refresh_url="https://api.example.com/token/refresh",
            cache=CacheManager(MemoryCacheStore()),
        )

        # Cached GET, decoded into a model
        result = await service.get(
            "https://api.example.com/folders",
            decoder=lambda data: [Grade(**item) for item in data],
        )

        # POST, never cached unless asked to
        await service.post("https://api.example.com/signup", {"email": "a@b.c"})

    Pass ``cache=None`` to disable caching; every cache step is then skipped.
    """

    def __init__(
        self,
        token_store: TokenStore,
        refresh_url: str,
        cache: CacheManager | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
        download_dir: Path | str = "downloads",
        coalesce_requests: bool = False,
        debug: bool = False,
    ):
        self.token_store = token_store
        self.refresh_url = refresh_url
        self._cache = cache
        self._timeout = timeout
        self._download_dir = Path(download_dir)
        self._debug = debug

        self._http_client = http_client
        self._owns_http_client = http_client is None

        # Optional single-flight for identical cacheable GETs
        self._coalescer = ResponseCoalescer(debug=debug) if coalesce_requests else None
        self._coalesce_keys = DefaultCacheKeyStrategy()

    # Configuration

    @property
    def cache(self) -> CacheManager | None:
        return self._cache

    def configure_cache(self, manager: CacheManager | None) -> None:
        """Set the cache used by this service, or disable caching with None."""
        self._cache = manager
        logger.debug(f"Response cache {'enabled' if manager else 'disabled'}")

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
            self._owns_http_client = True
        return self._http_client

    # Headers

    @property
    def access_token(self) -> str | None:
        return self.token_store.read_access_token()

    @property
    def refresh_token(self) -> str | None:
        return self.token_store.read_refresh_token()

    def build_authorized_headers(self, token: str | None = None) -> dict[str, str]:
        """Default headers, with a bearer token only when one is present."""
        token = token if token is not None else self.access_token
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def build_unauthorized_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _request_headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        """
        Headers for one attempt.

        Caller headers are kept as given; the current bearer token is added
        unless the caller set Authorization themselves.
        """
        if headers is None:
            return self.build_authorized_headers()

        merged = dict(headers)
        token = self.access_token
        if token and not any(k.lower() == "authorization" for k in merged):
            merged["Authorization"] = f"Bearer {token}"
        return merged

    # Verbs

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        decoder: Decoder[T] | None = None,
        use_cache: bool = True,
        force_refresh: bool = False,
    ) -> ApiResponse[T]:
        """Performs a cached HTTP GET request."""
        return await self.request(
            "GET",
            url,
            headers=headers,
            query=query,
            decoder=decoder,
            use_cache=use_cache,
            force_refresh=force_refresh,
        )

    async def post(
        self,
        url: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        decoder: Decoder[T] | None = None,
        use_cache: bool = False,
        force_refresh: bool = False,
    ) -> ApiResponse[T]:
        """Performs an HTTP POST request, cached only on request."""
        return await self.request(
            "POST",
            url,
            body=body,
            headers=headers,
            query=query,
            decoder=decoder,
            use_cache=use_cache,
            force_refresh=force_refresh,
        )

    async def put(
        self,
        url: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        decoder: Decoder[T] | None = None,
        use_cache: bool = False,
        force_refresh: bool = False,
    ) -> ApiResponse[T]:
        """Performs an HTTP PUT request, cached only on request."""
        return await self.request(
            "PUT",
            url,
            body=body,
            headers=headers,
            query=query,
            decoder=decoder,
            use_cache=use_cache,
            force_refresh=force_refresh,
        )

    async def delete(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        decoder: Decoder[T] | None = None,
        use_cache: bool = False,
        force_refresh: bool = False,
    ) -> ApiResponse[T]:
        """Performs an HTTP DELETE request, cached only on request."""
        return await self.request(
            "DELETE",
            url,
            headers=headers,
            query=query,
            decoder=decoder,
            use_cache=use_cache,
            force_refresh=force_refresh,
        )

    async def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        decoder: Decoder[T] | None = None,
        use_cache: bool | None = None,
        force_refresh: bool = False,
    ) -> ApiResponse[T]:
        """
        Make an HTTP request through cache, auth retry and error mapping.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            url: Full URL to request
            body: JSON-serialisable payload, or str/bytes sent as-is
            headers: Explicit headers (replace the defaults)
            query: Query parameters
            decoder: Converts the parsed JSON (or raw text) into T
            use_cache: Caller intent to read and fill the cache (default: GET only)
            force_refresh: Skip the cache read, still fill on success

        Returns:
            ApiResponse with the decoded body

        Raises:
            UnauthorizedError: 401 after the one-shot refresh
            NotFoundError: 404
            RequestTimeoutError: 408 or client-side timeout
            UnexpectedStatusError: Any other non-2xx status
            NetworkError: No response received
            MalformedResponseError: Body could not be decoded
        """
        method = method.upper()
        if use_cache is None:
            use_cache = method == "GET"
        probe_headers = self._request_headers(headers)

        # 1) Cache probe
        cached = await self._try_serve_from_cache(
            method=method,
            url=url,
            use_cache=use_cache,
            force_refresh=force_refresh,
            query=query,
            headers=probe_headers,
            decoder=decoder,
        )
        if cached is not None:
            return cached

        # 2) Network, with refresh-and-retry, then cache fill
        async def do_request() -> httpx.Response:
            return await self._fetch(
                method=method,
                url=url,
                body=body,
                headers=headers,
                query=query,
                use_cache=use_cache,
                cache_headers=probe_headers,
            )

        if self._coalescer is not None and method == "GET" and use_cache:
            key = self._coalesce_keys.build_key(url, query, method=method)
            response = await self._coalescer.fetch(key, do_request)
        else:
            response = await do_request()

        # 3) Log and map errors
        self.log_request_data(response, body)
        self.handle_error(response, url)

        text = response.text
        return ApiResponse(
            status_code=response.status_code,
            body=decode_body(text, decoder) if text else None,
            body_string=text,
            from_cache=False,
            url=url,
            request_headers=redact_headers(response.request.headers),
        )

    async def _fetch(
        self,
        method: str,
        url: str,
        body: Any,
        headers: Mapping[str, str] | None,
        query: Mapping[str, Any] | None,
        use_cache: bool,
        cache_headers: Mapping[str, str],
    ) -> httpx.Response:
        async def run(attempt_headers: dict[str, str]) -> httpx.Response:
            return await self._send(method, url, attempt_headers, query=query, body=body)

        response = await self._with_auth_retry(run, headers)

        if response.is_success:
            await self._try_write_cache(
                method=method,
                url=url,
                use_cache=use_cache,
                status_code=response.status_code,
                body_string=response.text,
                query=query,
                headers=cache_headers,
            )
        return response

    async def _send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        query: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()

        content: dict[str, Any] = {}
        if isinstance(body, (str, bytes)):
            content["content"] = body
        elif body is not None:
            content["json"] = body

        try:
            return await client.request(
                method=method,
                url=url,
                params=query,
                headers=headers,
                **content,
            )

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(url, self._timeout) from e

        except httpx.RequestError as e:
            raise NetworkError(f"Request to '{url}' failed: {e}", url=url) from e

    # Authentication

    async def _with_auth_retry(
        self,
        run: Callable[[dict[str, str]], Awaitable[httpx.Response]],
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """
        Run a request, refreshing the session and retrying once on 401.

        Headers are rebuilt for every attempt so the retry carries the
        refreshed token.
        """
        state = AttemptState.FIRST_ATTEMPT
        while True:
            response = await run(self._request_headers(headers))

            if response.status_code != 401 or state is AttemptState.RETRIED_AFTER_REFRESH:
                return response

            if not await self.refresh_session():
                return response

            state = AttemptState.RETRIED_AFTER_REFRESH
            self._log(f"Retrying {response.request.url} after session refresh")

    async def refresh_session(self) -> bool:
        """
        Renew the access token using the refresh token.

        Returns True when a new access token was stored. On any failure both
        tokens are cleared and False is returned.
        """
        refresh_token = self.refresh_token
        if not refresh_token:
            logger.warning("No refresh token available, session cannot be refreshed")
            await self.token_store.clear_tokens()
            return False

        try:
            response = await self._send(
                "POST",
                self.refresh_url,
                self.build_unauthorized_headers(),
                body={"refresh": refresh_token},
            )
        except ApiError as e:
            logger.warning(f"Session refresh failed: {e}")
            await self.token_store.clear_tokens()
            return False

        access = None
        if response.is_success:
            payload = parse_json_or_none(response.text)
            if isinstance(payload, dict) and isinstance(payload.get("access"), str):
                access = payload["access"]

        if not access:
            logger.warning(
                f"Session refresh rejected (HTTP {response.status_code}), clearing tokens"
            )
            await self.token_store.clear_tokens()
            return False

        await self.token_store.write_access_token(access)
        logger.info("Session refreshed")
        return True

    # Cache helpers

    async def _try_serve_from_cache(
        self,
        method: str,
        url: str,
        use_cache: bool,
        force_refresh: bool,
        query: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
        decoder: Decoder[T] | None,
    ) -> ApiResponse[T] | None:
        """Return a synthesised 200 response on a cache hit, else None."""
        if self._cache is None or not use_cache or force_refresh:
            return None

        cached = await self._cache.try_read(
            method,
            url,
            query,
            force_refresh=force_refresh,
            headers=headers,
            use_cache=use_cache,
        )
        if cached is None:
            return None

        logger.debug(f"Serving from cache: {url}")
        return ApiResponse(
            status_code=200,
            body=decode_body(cached, decoder),
            body_string=cached,
            from_cache=True,
            url=url,
        )

    async def _try_write_cache(
        self,
        method: str,
        url: str,
        use_cache: bool,
        status_code: int,
        body_string: str | None,
        query: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> None:
        if self._cache is None or not use_cache:
            return
        await self._cache.try_write(
            method,
            url,
            query,
            status_code=status_code,
            body_string=body_string,
            headers=headers,
            use_cache=use_cache,
        )

    # Errors and logging

    def handle_error(self, response: httpx.Response, url: str | None = None) -> None:
        """Raise the typed error for a non-2xx response."""
        if response.is_success:
            return

        status = response.status_code
        message = self._extract_error_message(response)

        if status == 401:
            raise UnauthorizedError(message or "Unauthorized", url=url)
        if status == 404:
            raise NotFoundError(message or "Not found", url=url)
        if status == 408:
            raise RequestTimeoutError(url, status_code=408)
        raise UnexpectedStatusError(status, message, url=url)

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str | None:
        try:
            payload = parse_json_or_none(response.text)
        except httpx.ResponseNotRead:
            payload = None

        if isinstance(payload, dict):
            for field_name in ("message", "detail"):
                if isinstance(payload.get(field_name), str):
                    return payload[field_name]
        return response.reason_phrase or None

    def log_request_data(self, response: httpx.Response, body: Any = None) -> None:
        """Dump request and response for debugging, with the token redacted."""
        if __debug__:
            headers = redact_headers(response.request.headers)
            try:
                preview = response.text[:LOG_PREVIEW_LENGTH]
            except httpx.ResponseNotRead:
                preview = "<stream>"
            logger.debug(
                f"Calling API: {response.request.url}\n"
                f"Headers: {headers}\n"
                f"Status Code: {response.status_code}\n"
                f"Body: {'<string>' if isinstance(body, (str, bytes)) else body}\n"
                f"Response: {preview}"
            )

    # Downloads

    async def download_file(
        self,
        url: str,
        file_name: str,
        headers: Mapping[str, str] | None = None,
        on_complete: Callable[[int, int], None] | None = None,
        directory: Path | str | None = None,
    ) -> Path:
        """
        Download a file with the same auth and refresh rules as other calls.

        The whole body is written to ``directory / file_name`` before
        ``on_complete(received, total)`` is called.

        Returns:
            Path to the written file
        """

        async def run(attempt_headers: dict[str, str]) -> httpx.Response:
            return await self._send("GET", url, attempt_headers)

        response = await self._with_auth_retry(run, headers)
        self.log_request_data(response)

        if response.status_code != 200:
            self.handle_error(response, url)
            raise UnexpectedStatusError(
                response.status_code,
                f"Failed to download file: {response.status_code}",
                url=url,
            )

        target_dir = Path(directory) if directory is not None else self._download_dir
        target = target_dir / file_name
        content = response.content

        def write() -> None:
            target_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

        await asyncio.to_thread(write)

        received = len(content)
        total = int(response.headers.get("content-length", received))
        if on_complete is not None:
            on_complete(received, total)

        logger.info(f"Downloaded {url} to {target} ({received} bytes)")
        return target

    # Lifecycle

    async def close(self) -> None:
        """Close the HTTP client (when owned) and cleanup resources."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

        if self._coalescer is not None:
            await self._coalescer.cancel_all()
        logger.debug("ApiService closed")

    async def __aenter__(self) -> "ApiService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ApiService] {message}")


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of headers with any Authorization value replaced."""
    return {
        key: REDACTED_AUTHORIZATION if key.lower() == "authorization" else value
        for key, value in headers.items()
    }
