"""Apso HTTP client."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .cache import ResponseCache
from .entity import EntityClient
from .exceptions import NetworkError, TransportError, UnsupportedConfigurationError
from .executors import Executor, ExecutorResponse, create_executor
from .query import serialize_query
from .types import DEFAULT_CACHE_DURATION, ApsoClientConfig, QueryParams, RetryConfig

logger = logging.getLogger(__name__)

METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})


class ApsoClient:
    """Async HTTP client for an Apso API.

    Owns the executor, the retry policy and the response cache shared by
    every :class:`~apso.entity.EntityClient` created through :meth:`entity`.

    Args:
        config: Connection settings.
        executor: Executor to dispatch requests with. Built from
            ``config.client`` when omitted.
        cache: Response cache; a fresh one is created when omitted.
        sleep: Coroutine used for backoff delays.

    Example:
        >>> async with ApsoClient(ApsoClientConfig(base_url, api_key)) as client:
        ...     users = await client.entity("users").where({"status": "active"}).find_many()
    """

    def __init__(
        self,
        config: ApsoClientConfig,
        *,
        executor: Executor | None = None,
        cache: ResponseCache | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self.retry_config: RetryConfig | None = config.retry_config
        # Fail on an unknown query style at construction, not on first request.
        serialize_query(None, config.query_style)
        self._executor = executor or create_executor(config.client)
        self._cache = cache if cache is not None else ResponseCache()
        self._sleep = sleep

    async def aclose(self) -> None:
        """Close the underlying executor."""
        await self._executor.aclose()

    async def __aenter__(self) -> "ApsoClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def entity(self, name: str) -> EntityClient:
        """Create a query builder scoped to the ``name`` resource.

        Example:
            >>> users = await client.entity("users").where({"status": "active"}).find_many()
        """
        return EntityClient(self, name)

    def headers(self) -> dict[str, str]:
        """Default headers; configured headers override them."""
        return {
            "x-api-key": self.config.api_key,
            "Content-Type": "application/json",
            **self.config.headers,
        }

    def query_string(self, params: QueryParams | None) -> str:
        """Serialize ``params`` with a leading ``?``, or return ""."""
        if params is None or params.is_empty():
            return ""
        query = serialize_query(params, self.config.query_style)
        return f"?{query}" if query else ""

    async def get(
        self,
        path: str,
        params: QueryParams | None = None,
        use_cache: bool = False,
        cache_duration: float = DEFAULT_CACHE_DURATION,
    ) -> Any:
        """Perform a GET request, optionally served from the cache.

        Args:
            path: Resource path, e.g. "/users".
            params: Query parameters.
            use_cache: Return a cached response when one is still valid, and
                cache the fresh response otherwise.
            cache_duration: Seconds a fresh response stays valid.

        Returns:
            Decoded JSON response body.
        """
        key = f"{path}{self.query_string(params)}"

        if use_cache:
            entry = self._cache.lookup(key)
            if entry is not None:
                logger.debug("Cache hit for %s", key)
                return entry.data

        data = await self._request("GET", path, params=params)

        if use_cache:
            self._cache.store(key, data, cache_duration)
        return data

    async def post(self, path: str, body: Any) -> Any:
        """Perform a POST request with a JSON body."""
        return await self._request("POST", path, body=body)

    async def put(self, path: str, body: Any) -> Any:
        """Perform a PUT request with a JSON body."""
        return await self._request("PUT", path, body=body)

    async def delete(self, path: str) -> Any:
        """Perform a DELETE request."""
        return await self._request("DELETE", path)

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()

    async def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: QueryParams | None = None,
    ) -> Any:
        """Execute a request, retrying per the configured policy."""
        method = method.upper()
        if method not in METHODS:
            raise UnsupportedConfigurationError(f"Unsupported HTTP method: {method}")

        url = f"{self.base_url}{path}{self.query_string(params)}"
        headers = self.headers()
        retry = self.retry_config
        max_attempts = retry.attempts if retry else 1

        for attempt in range(1, max_attempts + 1):
            logger.debug("%s %s (attempt %d/%d)", method, url, attempt, max_attempts)
            try:
                response = await self._executor.execute(
                    method, url, headers, body, self.timeout
                )
            except NetworkError as e:
                if retry is None or attempt >= max_attempts:
                    raise
                await self._backoff(retry, attempt, f"{method} {url} failed: {e}")
                continue

            if response.ok:
                try:
                    return response.json()
                except ValueError:
                    raise TransportError(
                        "Invalid JSON response", status=response.status, body=response.body()
                    )

            error = self._http_error(method, url, response)
            if retry is None or not retry.should_retry(response.status) or attempt >= max_attempts:
                raise error
            await self._backoff(retry, attempt, f"{method} {url} returned {response.status}")

        # The loop always returns or raises; max_attempts is at least 1.
        raise AssertionError("unreachable")

    async def _backoff(self, retry: RetryConfig, attempt: int, reason: str) -> None:
        delay = retry.backoff(attempt)
        logger.warning(
            "%s; retrying in %.2fs (attempt %d/%d)", reason, delay, attempt + 1, retry.attempts
        )
        await self._sleep(delay)

    def _http_error(self, method: str, url: str, response: ExecutorResponse) -> TransportError:
        body = response.body()
        message = f"HTTP error! status: {response.status}"
        if isinstance(body, dict) and body.get("message"):
            message = f"{message} ({body['message']})"
        code = body.get("code") if isinstance(body, dict) else None
        if code is not None:
            code = str(code)
        logger.debug("%s %s failed with %s", method, url, response.status)
        return TransportError(message, status=response.status, body=body, code=code)
