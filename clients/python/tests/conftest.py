"""Shared fixtures for the Apso client tests."""

from typing import Any

import httpx
import pytest

from apso import ApsoClient, ApsoClientConfig, ResponseCache, create_executor

BASE_URL = "https://api.example.com"
API_KEY = "test-api-key"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeApi:
    """Scripted server for httpx.MockTransport that records every request.

    Queued responses (or exceptions) are consumed in order; once the queue
    is empty every request gets ``default_status`` with ``default_json``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []
        self.default_status = 200
        self.default_json: Any = {}

    def queue(self, *responses: httpx.Response | Exception) -> None:
        self.responses.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return httpx.Response(self.default_status, json=self.default_json)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_client(api, clock, sleeps):
    """Build an ApsoClient wired to the fake API, clock and sleep."""

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(client: str = "fetch", **config: Any) -> ApsoClient:
        return ApsoClient(
            ApsoClientConfig(BASE_URL, API_KEY, client=client, **config),
            executor=create_executor(client, transport=api.transport),
            cache=ResponseCache(clock=clock),
            sleep=fake_sleep,
        )

    return _make


@pytest.fixture
def client(make_client) -> ApsoClient:
    return make_client()
