"""
Client-side event dispatcher.

`EventTracker.track(...)` sends one analytics event to the ingestion endpoint,
with two gates in front of the network call:
- identity: no session id (server context) -> nothing is sent
- debounce: the same (type, place, influencer, recommendation) tuple fired less
  than `debounce_ms` ago -> nothing is sent

Transmission is fire-and-forget. `track` returns a `Future` the caller may
ignore; it resolves to True on a 2xx and False otherwise. Transport errors go
to the `on_error` observer (a log line by default) and are never re-raised or
retried.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Mapping, Protocol

import httpx

from eatwithme.config.settings import Settings
from eatwithme.core.http import post_json
from eatwithme.core.time import now_ms
from eatwithme.domain.models import EVENT_TYPES, TrackedEvent
from eatwithme.tracking.debounce import DebounceCache
from eatwithme.tracking.session import SessionIdProvider

logger = logging.getLogger(__name__)


class EventTransport(Protocol):
    def send(self, event: TrackedEvent) -> None:
        """Deliver one event; raise on failure."""
        ...


class HttpEventTransport:
    """POST events as JSON to the ingestion endpoint (raises on non-2xx)."""

    def __init__(self, endpoint: str, *, timeout_seconds: float = 5, client: httpx.Client | None = None):
        self._endpoint = endpoint
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def send(self, event: TrackedEvent) -> None:
        post_json(
            self._endpoint,
            payload=event.to_wire(),
            timeout_seconds=self._timeout_seconds,
            client=self._client,
        )


def log_tracking_error(event: TrackedEvent, exc: BaseException) -> None:
    logger.warning("Tracking error for %s: %s", event.type, exc)


class EventTracker:
    def __init__(
        self,
        *,
        session: SessionIdProvider,
        transport: EventTransport,
        cache: DebounceCache | None = None,
        executor: Executor | None = None,
        max_workers: int = 2,
        clock_ms: Callable[[], int] = now_ms,
        on_error: Callable[[TrackedEvent, BaseException], None] = log_tracking_error,
    ):
        self._session = session
        self._transport = transport
        self._cache = cache if cache is not None else DebounceCache()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="eatwithme-track"
        )
        self._clock_ms = clock_ms
        self._on_error = on_error
        self._lock = threading.Lock()

    @property
    def cache(self) -> DebounceCache:
        return self._cache

    def track(
        self,
        type: str,
        *,
        place_id: str | None = None,
        influencer_id: str | None = None,
        recommendation_id: str | None = None,
        metadata: Mapping[Any, Any] | None = None,
    ) -> Future[bool] | None:
        """Send an event unless gated; returns the pending send, or None when skipped."""
        if type not in EVENT_TYPES:
            raise ValueError(f"unknown event type {type!r}; expected one of {', '.join(EVENT_TYPES)}")

        # Session creation, the debounce check and the record happen under one lock.
        with self._lock:
            session_id = self._session.get_session_id()
            if not session_id:
                return None

            event = TrackedEvent(
                type=type,
                place_id=place_id or None,
                influencer_id=influencer_id or None,
                recommendation_id=recommendation_id or None,
                session_id=session_id,
                metadata=dict(metadata) if metadata else None,
            )
            key = event.dedup_key()
            now = self._clock_ms()
            if self._cache.should_suppress(key, now):
                logger.debug("Suppressed duplicate event %s", key)
                return None
            self._cache.record(key, now)

        try:
            return self._executor.submit(self._send, event)
        except RuntimeError as exc:
            # Executor already shut down.
            self._report(event, exc)
            return None

    def _report(self, event: TrackedEvent, exc: BaseException) -> None:
        try:
            self._on_error(event, exc)
        except Exception:
            logger.exception("Tracking error observer failed")

    def _send(self, event: TrackedEvent) -> bool:
        try:
            self._transport.send(event)
        except Exception as exc:
            self._report(event, exc)
            return False
        return True

    def close(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "EventTracker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def track_page_view(
    tracker: EventTracker,
    *,
    url: str,
    referrer: str | None = None,
    influencer_id: str | None = None,
    place_id: str | None = None,
) -> Future[bool] | None:
    """Record that a page (home, influencer profile, place) was viewed."""
    return tracker.track(
        "page_view",
        influencer_id=influencer_id,
        place_id=place_id,
        metadata={"url": url, "referrer": referrer or None},
    )


def build_tracker(settings: Settings, *, session: SessionIdProvider, **kwargs: Any) -> EventTracker:
    """Create a tracker wired to the configured endpoint and debounce knobs."""
    tracking = settings.tracking
    kwargs.setdefault("transport", HttpEventTransport(tracking.endpoint, timeout_seconds=tracking.timeout_seconds))
    kwargs.setdefault("cache", DebounceCache(window_ms=tracking.debounce_ms, max_entries=tracking.max_cache_entries))
    kwargs.setdefault("max_workers", tracking.max_workers)
    return EventTracker(session=session, **kwargs)
