"""Observer notifications published by the request engine and streamer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from prtg_client.domain import RequestDescriptor, domain_build_stage_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryRequestEvent:
    """Notification that a transient failure is about to be retried.

    Attributes:
        attempt: One-based number of the attempt that failed.
        descriptor: Descriptor being retried.
        error: Transient failure that triggered the retry.
        delay_seconds: Backoff wait before the next attempt.
    """

    attempt: int
    descriptor: RequestDescriptor
    error: BaseException
    delay_seconds: float


@dataclass(frozen=True)
class LogVerboseEvent:
    """Verbose diagnostic message with its structured stage event."""

    message: str
    stage_event: dict[str, object] = field(default_factory=dict)


RetrySubscriber = Callable[[RetryRequestEvent], None]
LogSubscriber = Callable[[LogVerboseEvent], None]


class EngineEventHub:
    """Thread-safe subscriber lists for retry and verbose notifications.

    Publishing never changes control flow: subscriber failures are logged and
    skipped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._retry_subscribers: list[RetrySubscriber] = []
        self._log_subscribers: list[LogSubscriber] = []

    def events_subscribe_retry(self, callback: RetrySubscriber) -> None:
        with self._lock:
            self._retry_subscribers.append(callback)

    def events_unsubscribe_retry(self, callback: RetrySubscriber) -> None:
        with self._lock:
            if callback in self._retry_subscribers:
                self._retry_subscribers.remove(callback)

    def events_subscribe_log(self, callback: LogSubscriber) -> None:
        with self._lock:
            self._log_subscribers.append(callback)

    def events_unsubscribe_log(self, callback: LogSubscriber) -> None:
        with self._lock:
            if callback in self._log_subscribers:
                self._log_subscribers.remove(callback)

    def events_publish_retry(self, event: RetryRequestEvent) -> None:
        """Notify retry subscribers about one upcoming retry."""

        logger.warning(
            "Retrying PRTG request after transient failure: attempt=%s delay=%.1fs request=%s error=%s",
            event.attempt,
            event.delay_seconds,
            event.descriptor.descriptor_describe(),
            event.error,
        )
        with self._lock:
            subscribers = list(self._retry_subscribers)
        for subscriber in subscribers:
            self._events_invoke(subscriber, event)

    def events_publish_log(
        self,
        message: str,
        stage: str,
        status: str,
        details: dict[str, object] | None = None,
    ) -> None:
        """Log one verbose message and notify log subscribers.

        Args:
            message: Human-readable message.
            stage: Stage name for the structured event.
            status: Stage status marker.
            details: Optional structured details.
        """

        logger.debug(message)
        with self._lock:
            subscribers = list(self._log_subscribers)
        if not subscribers:
            return
        event = LogVerboseEvent(
            message=message,
            stage_event=domain_build_stage_event(stage=stage, status=status, details=details),
        )
        for subscriber in subscribers:
            self._events_invoke(subscriber, event)

    def _events_invoke(self, subscriber: Callable[[object], None], event: object) -> None:
        try:
            subscriber(event)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("PRTG event subscriber %r failed; continuing", subscriber)
