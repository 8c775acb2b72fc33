import asyncio
import threading
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx

from geoip_resolver.models.common import GeoResult


class MockResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = int(status_code)
        self.text = text


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient.

    Every GET is recorded in `calls` as a (url, headers) tuple, with the URL
    percent-encoded the way httpx sends it.
    """

    def __init__(self, response: MockResponse, calls: list[tuple[str, dict[str, str]]] | None = None) -> None:
        self._response = response
        self.calls = calls if calls is not None else []

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, headers: dict[str, str] | None = None) -> MockResponse:
        self.calls.append((str(httpx.URL(url)), dict(headers or {})))
        return self._response


class FailingAsyncClient:
    """Async client that raises a RequestError on enter to simulate network failure.

    The target URL is provided at construction time, so tests can reuse this
    implementation with different base URLs.
    """

    def __init__(self, url: str, *args: Any, **kwargs: Any) -> None:
        self._url = url

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise httpx.RequestError("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, headers: dict[str, str] | None = None) -> MockResponse:
        return MockResponse(status_code=HTTPStatus.OK)


class StalledAsyncClient:
    """Async client whose GET never completes within a test's lifetime."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        pass

    async def __aenter__(self) -> "StalledAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, headers: dict[str, str] | None = None) -> MockResponse:
        await asyncio.sleep(60)
        return MockResponse(status_code=HTTPStatus.OK)


def make_fake_async_client(
    response: MockResponse, calls: list[tuple[str, dict[str, str]]] | None = None
) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response."""

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        return MockAsyncClient(response, calls)

    return _fake_client


class ResultCollector:
    """Completion handler that records results and the thread they arrived on."""

    def __init__(self) -> None:
        self.results: list[GeoResult] = []
        self.threads: list[threading.Thread] = []
        self._event = threading.Event()

    def __call__(self, result: GeoResult) -> None:
        self.results.append(result)
        self.threads.append(threading.current_thread())
        self._event.set()

    def wait(self, timeout: float = 2.0) -> bool:
        return self._event.wait(timeout)
