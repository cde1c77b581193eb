"""Completion-order fan-in of concurrently dispatched page fetches."""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, wait
from typing import Generic, Iterable, Iterator, TypeVar

from prtg_client.adapters import PrtgStreamAbortedError

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


def _merger_future_failed(future: Future) -> bool:
    return future.cancelled() or future.exception() is not None


def _merger_log_abandoned_outcome(future: Future) -> None:
    if future.cancelled():
        logger.debug("Abandoned PRTG page fetch was cancelled before it started")
        return
    error = future.exception()
    if error is not None:
        logger.warning("Abandoned PRTG page fetch failed after the stream stopped: %r", error)
    else:
        logger.debug("Abandoned PRTG page fetch completed after the stream stopped; records discarded")


class FanInMerger(Generic[RecordT]):
    """Yield records of already-dispatched page fetches as each fetch completes.

    Within one page the server order is kept. Across pages the yield order is
    the completion order, not the dispatch order. When several fetches finish
    together, successful pages are yielded before a fault is raised.

    On the first fault, or when the consumer stops iterating, queued fetches
    are cancelled, the shared cancellation event is set so running fetches stop
    at their next retry boundary, and every outstanding fetch gets a callback
    that logs its eventual outcome.
    """

    def __init__(
        self,
        futures: Iterable[Future[list[RecordT]]],
        cancel_event: threading.Event | None = None,
        report_abandoned: bool = False,
    ):
        """Initialize the merger.

        Args:
            futures: Dispatched page fetches, each resolving to a list of records.
            cancel_event: Cancellation signal shared with the running fetches.
            report_abandoned: Raise `PrtgStreamAbortedError` instead of the original
                fault when other fetches were still outstanding.
        """

        self._futures = list(futures)
        self._dispatch_order = {future: index for index, future in enumerate(self._futures)}
        self._cancel_event = cancel_event
        self._report_abandoned = report_abandoned
        self._pending: set[Future[list[RecordT]]] = set(self._futures)
        self._ready: deque[Future[list[RecordT]]] = deque()
        self._released = False
        self.merger_completed_count = 0
        self.merger_abandoned: list[Future[list[RecordT]]] = []

    def __iter__(self) -> Iterator[RecordT]:
        return self._merger_drain()

    def _merger_drain(self) -> Iterator[RecordT]:
        try:
            while self._pending or self._ready:
                if not self._ready:
                    done, self._pending = wait(self._pending, return_when=FIRST_COMPLETED)
                    self._ready.extend(
                        sorted(done, key=lambda future: (_merger_future_failed(future), self._dispatch_order[future]))
                    )
                future = self._ready.popleft()
                self.merger_completed_count += 1
                try:
                    page_records = future.result()
                except Exception as error:
                    outstanding_count = len(self._pending) + len(self._ready)
                    if self._report_abandoned and outstanding_count:
                        raise PrtgStreamAbortedError(
                            f"PRTG stream aborted with {outstanding_count} page fetches outstanding",
                            abandoned_count=outstanding_count,
                        ) from error
                    raise
                yield from page_records
        finally:
            self.merger_close()

    def merger_close(self) -> None:
        """Release every fetch that was not yielded; safe to call repeatedly."""

        if self._released:
            return
        self._released = True
        outstanding = list(self._ready) + sorted(self._pending, key=self._dispatch_order.__getitem__)
        self._ready.clear()
        self._pending.clear()
        if not outstanding:
            return

        # queued fetches are cancelled before running ones are woken
        for future in outstanding:
            future.cancel()
        if self._cancel_event is not None:
            self._cancel_event.set()
        for future in outstanding:
            future.add_done_callback(_merger_log_abandoned_outcome)
        self.merger_abandoned.extend(outstanding)
        logger.info("Abandoned %s outstanding PRTG page fetches", len(outstanding))
