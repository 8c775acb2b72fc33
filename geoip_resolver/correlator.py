import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from geoip_resolver.logger import logger
from geoip_resolver.models.common import GeoIpStatus, GeoResult
from geoip_resolver.parsing import parse_response_body

CompletionHandler = Callable[[GeoResult], None]


@dataclass(frozen=True)
class PendingLookup:
    request_id: str
    key: str
    handler: CompletionHandler


class ResponseCorrelator:
    """Routes completed lookups back to the handler that started them.

    Pending lookups are keyed by an opaque request id generated at registration
    time, so concurrent lookups of the same key never replace each other. The
    lock guards only insertion, match-and-remove and snapshots; parsing and
    handler invocation always happen after it is released, which lets a handler
    start new lookups from inside its callback.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingLookup] = {}
        self._lock = threading.Lock()

    def register(self, key: str, handler: CompletionHandler) -> str:
        request_id = uuid.uuid4().hex
        with self._lock:
            self._pending[request_id] = PendingLookup(request_id=request_id, key=key, handler=handler)
        return request_id

    def take(self, request_id: str) -> PendingLookup | None:
        """Remove and return the pending lookup, or None if it already completed."""
        with self._lock:
            return self._pending.pop(request_id, None)

    def is_pending(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending_keys(self) -> list[str]:
        with self._lock:
            return [pending.key for pending in self._pending.values()]

    def complete(self, request_id: str, body: str) -> None:
        """Deliver the result of a response body the transport accepted."""
        pending = self._take_or_discard(request_id)
        if pending is None:
            return
        try:
            result = parse_response_body(pending.key, body)
        except Exception as exc:
            logger.exception(f"Could not parse geolocation response key={pending.key} request_id={request_id}")
            result = GeoResult.failure(pending.key, f"Unexpected error while parsing response: {repr(exc)}")
        self._invoke(pending, result)

    def fail(self, request_id: str, error: Exception) -> None:
        """Deliver a FAIL result for a transport or scheduling failure."""
        pending = self._take_or_discard(request_id)
        if pending is None:
            return
        logger.error(f"Geolocation lookup failed key={pending.key} request_id={request_id} error={error}")
        self._invoke(pending, GeoResult.failure(pending.key, str(error)))

    def time_out(self, request_id: str, timeout_seconds: float) -> None:
        """Deliver a TIMEOUT result when the lookup timer wins the race."""
        pending = self._take_or_discard(request_id)
        if pending is None:
            return
        logger.warning(
            f"Geolocation lookup timed out key={pending.key} request_id={request_id} timeout={timeout_seconds}"
        )
        result = GeoResult.failure(
            pending.key,
            f"Lookup timed out after {timeout_seconds:g} seconds",
            status=GeoIpStatus.TIMEOUT,
        )
        self._invoke(pending, result)

    def _take_or_discard(self, request_id: str) -> PendingLookup | None:
        pending = self.take(request_id)
        if pending is None:
            logger.warning(f"Discarding geolocation response with no pending lookup request_id={request_id}")
        return pending

    @staticmethod
    def _invoke(pending: PendingLookup, result: GeoResult) -> None:
        try:
            pending.handler(result)
        except Exception:
            logger.exception(
                "Geolocation completion handler raised "
                f"key={pending.key} request_id={pending.request_id} status={result.status.value}"
            )
