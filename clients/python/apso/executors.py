"""HTTP executors.

An executor performs exactly one HTTP exchange. It knows nothing about
retries, caching or query strings; :class:`~apso.client.ApsoClient` layers
those on top of any object satisfying :class:`Executor`.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from .exceptions import NetworkError, RequestTimeoutError, UnsupportedConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ExecutorResponse:
    """Status and raw body of a completed exchange."""

    status: int
    content: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.content:
            return None
        return json.loads(self.content)

    def body(self) -> Any:
        """Decoded body for error reporting; falls back to text."""
        try:
            return self.json()
        except ValueError:
            return self.content.decode("utf-8", errors="replace")


@runtime_checkable
class Executor(Protocol):
    """Capability that performs a single HTTP request."""

    async def execute(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
        timeout: float | None = None,
    ) -> ExecutorResponse:
        ...

    async def aclose(self) -> None:
        ...


def _encode_body(body: Any) -> bytes | None:
    if body is None:
        return None
    return json.dumps(body).encode("utf-8")


class FetchExecutor:
    """Low-level executor driving an httpx transport directly.

    Each call builds a bare :class:`httpx.Request` and hands it to the
    transport, bounding the whole exchange with :func:`asyncio.wait_for` so
    an expired deadline cancels the in-flight attempt.

    Args:
        transport: Transport to send requests through. Defaults to a new
            :class:`httpx.AsyncHTTPTransport`.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def _send(self, request: httpx.Request) -> ExecutorResponse:
        response = await self._transport.handle_async_request(request)
        try:
            content = await response.aread()
        finally:
            await response.aclose()
        return ExecutorResponse(status=response.status_code, content=content)

    async def execute(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
        timeout: float | None = None,
    ) -> ExecutorResponse:
        request = httpx.Request(method, url, headers=headers, content=_encode_body(body))
        try:
            return await asyncio.wait_for(self._send(request), timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(f"{method} {url} timed out after {timeout}s")
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{method} {url} timed out: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}")

    async def aclose(self) -> None:
        await self._transport.aclose()


class HttpxExecutor:
    """High-level executor backed by :class:`httpx.AsyncClient`.

    Args:
        transport: Optional transport for the underlying client (e.g.
            :class:`httpx.MockTransport` in tests).
        client: Use an existing client instead of creating one. It is not
            closed by :meth:`aclose`.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(transport=transport)

    async def execute(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
        timeout: float | None = None,
    ) -> ExecutorResponse:
        request = self._client.request(
            method,
            url,
            headers=headers,
            content=_encode_body(body),
            timeout=timeout,
        )
        try:
            # httpx only bounds each phase; wait_for bounds the whole attempt
            response = await asyncio.wait_for(request, timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(f"{method} {url} timed out after {timeout}s")
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{method} {url} timed out: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}")
        return ExecutorResponse(status=response.status_code, content=response.content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


EXECUTORS: dict[str, type] = {
    "fetch": FetchExecutor,
    "httpx": HttpxExecutor,
}


def create_executor(name: str, **kwargs: Any) -> Executor:
    """Build the executor registered under ``name``.

    Raises:
        UnsupportedConfigurationError: If ``name`` is not a known executor.
    """
    try:
        executor_cls = EXECUTORS[name]
    except KeyError:
        raise UnsupportedConfigurationError(
            f"Unsupported HTTP client: {name!r} (expected one of {sorted(EXECUTORS)})"
        )
    logger.debug("Using %s executor", name)
    return executor_cls(**kwargs)
