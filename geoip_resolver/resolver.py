import asyncio
import threading
from collections.abc import Coroutine
from http import HTTPStatus
from typing import Any

import httpx

from geoip_resolver import settings
from geoip_resolver.correlator import CompletionHandler, ResponseCorrelator
from geoip_resolver.errors import InvalidLookupKeyError, LookupScheduleError, UpstreamServiceError
from geoip_resolver.logger import logger
from geoip_resolver.models.common import GeoResult

# ip-api.com ignores it on a GET, but existing consumers of the service send it.
REQUEST_HEADERS = {"Content-Type": "application/json"}


class GeoIpResolver:
    """Non-blocking client for the http://ip-api.com JSON API.

    `resolve` registers a completion handler and schedules the HTTP request on an
    asyncio event loop, returning immediately. The handler later receives exactly
    one GeoResult: SUCCESS with data, FAIL with a message (including transport
    errors), or TIMEOUT when `lookup_timeout_seconds` is set and expires first.

    The resolver is bound to `loop` when given; otherwise it uses the loop running
    in the thread that calls `resolve`. Calls from other threads are handed over
    to the bound loop thread-safely.

    Example:
        resolver = GeoIpResolver()
        resolver.resolve("8.8.8.8", lambda result: print(result.data.country))
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        lookup_timeout_seconds: float | None = settings.GEOIP_LOOKUP_TIMEOUT_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
        correlator: ResponseCorrelator | None = None,
    ) -> None:
        self._base_url = (base_url or settings.GEOIP_BASE_URL).rstrip("/")
        self._timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.GEOIP_TIMEOUT_SECONDS
        self._lookup_timeout_seconds = lookup_timeout_seconds
        self._loop = loop
        self._correlator = correlator or ResponseCorrelator()
        # Strong references to in-flight tasks; only touched on the loop thread.
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def correlator(self) -> ResponseCorrelator:
        return self._correlator

    def resolve(self, key: str, on_complete: CompletionHandler) -> None:
        """Start a lookup for `key` and deliver its result to `on_complete`.

        Only an invalid key raises here. Failing to schedule the request is reported
        to `on_complete` as a FAIL result from a background thread, like any other
        lookup failure.

        A bound loop that is not running is treated as a scheduling failure. A loop
        that stops after accepting the request never runs it; that lookup stays
        pending and its handler is not called.
        """
        self._validate_key(key)
        request_id = self._correlator.register(key, on_complete)
        logger.debug(f"Dispatching geolocation lookup key={key} request_id={request_id}")

        try:
            self._schedule(self._run_lookup(request_id, key))
        except LookupScheduleError as exc:
            logger.error(f"Could not schedule geolocation lookup key={key} request_id={request_id} error={exc}")
            threading.Thread(
                target=self._correlator.fail,
                args=(request_id, exc),
                name=f"geoip-schedule-failure-{request_id}",
                daemon=True,
            ).start()

    async def lookup(self, key: str) -> GeoResult:
        """Resolve `key` and wait for its result from a coroutine."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[GeoResult] = loop.create_future()

        def _set_result(result: GeoResult) -> None:
            if not future.done():
                future.set_result(result)

        def _on_complete(result: GeoResult) -> None:
            loop.call_soon_threadsafe(_set_result, result)

        self.resolve(key, _on_complete)
        return await future

    @staticmethod
    def _validate_key(key: Any) -> None:
        if not isinstance(key, str) or not key.strip():
            raise InvalidLookupKeyError("Lookup key must be a non-empty IP address or hostname.")

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                coro.close()
                raise LookupScheduleError("No running event loop to schedule the geolocation lookup on.") from exc

        if not loop.is_closed() and not loop.is_running():
            coro.close()
            raise LookupScheduleError("Event loop is not running; the geolocation lookup would never start.")

        try:
            loop.call_soon_threadsafe(self._start_task, coro)
        except RuntimeError as exc:
            # Raised by a closed loop.
            coro.close()
            raise LookupScheduleError(f"Event loop rejected the geolocation lookup: {exc}") from exc

    def _start_task(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_lookup(self, request_id: str, key: str) -> None:
        """Perform one lookup and hand its outcome to the correlator."""
        try:
            if self._lookup_timeout_seconds is None:
                body = await self._request(key)
            else:
                body = await asyncio.wait_for(self._request(key), timeout=self._lookup_timeout_seconds)
        except asyncio.TimeoutError:
            self._correlator.time_out(request_id, self._lookup_timeout_seconds)
        except UpstreamServiceError as exc:
            self._correlator.fail(request_id, exc)
        except Exception as exc:
            logger.exception(f"Unexpected error during geolocation lookup key={key} request_id={request_id}")
            self._correlator.fail(request_id, UpstreamServiceError(f"Unexpected error during lookup: {repr(exc)}"))
        else:
            self._correlator.complete(request_id, body)

    async def _request(self, key: str) -> str:
        """Perform the HTTP request and return the raw response body.

        Transport failures and non-2xx statuses are raised as UpstreamServiceError;
        interpreting the body is left to the correlator.
        """
        url = f"{self._base_url}/json/{key}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.get(url, headers=REQUEST_HEADERS)
        except httpx.RequestError as exc:
            raise UpstreamServiceError(f"Request to geolocation service failed: {repr(exc)}") from exc

        self._handle_http_errors(response)
        return response.text

    @staticmethod
    def _handle_http_errors(response: httpx.Response) -> None:
        """Map non-2xx HTTP statuses from the service to UpstreamServiceError."""
        status_code = response.status_code

        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raise UpstreamServiceError("Geolocation service rate limit or quota exceeded (HTTP 429).")

        if not HTTPStatus.OK <= status_code < HTTPStatus.MULTIPLE_CHOICES:
            raise UpstreamServiceError(f"Geolocation service returned HTTP {status_code}: {response.text}")
