"""Paging streamer turning PRTG table queries into one lazy record sequence."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Final, Iterator

from prtg_client.domain import (
    EndpointKind,
    PageCursor,
    QueryParameters,
    RequestDescriptor,
    ResponseValidator,
    StreamSession,
    StreamStrategy,
)
from prtg_client.request import RequestEngine

from .fan_in import FanInMerger

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE: Final[int] = 500
DEFAULT_SERIAL_THRESHOLD: Final[int] = 20000

CountProbe = Callable[[QueryParameters], int]
PageFetcher = Callable[[QueryParameters, threading.Event], list[Any]]


def streaming_plan_page_cursors(total_count: int, page_size: int) -> list[PageCursor]:
    """Split a record total into page cursors.

    The final cursor is clipped to the remaining record count.

    Args:
        total_count: Number of records to cover.
        page_size: Records per full page.

    Returns:
        list[PageCursor]: Cursors in page order; empty when total is zero.

    Raises:
        ValueError: Raised when total is negative or page size is not positive.
    """

    if total_count < 0:
        raise ValueError("total_count must be >= 0")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    cursors: list[PageCursor] = []
    offset = 0
    while offset < total_count:
        clipped_page_size = min(page_size, total_count - offset)
        cursors.append(PageCursor(page_index=len(cursors), page_size=clipped_page_size, offset=offset))
        offset += clipped_page_size
    return cursors


def streaming_select_strategy(total_count: int, serial_requested: bool, serial_threshold: int) -> StreamStrategy:
    """Return SERIAL above the threshold or when requested, PARALLEL otherwise."""

    if serial_requested or total_count > serial_threshold:
        return StreamStrategy.SERIAL
    return StreamStrategy.PARALLEL


class PagingStreamer:
    """Stream every record of a table query through paged requests.

    Totals above `serial_threshold` are fetched one page at a time; smaller
    totals dispatch all pages at once onto the engine's worker pool and are
    yielded in completion order.
    """

    def __init__(
        self,
        engine: RequestEngine,
        page_size: int = DEFAULT_PAGE_SIZE,
        serial_threshold: int = DEFAULT_SERIAL_THRESHOLD,
    ):
        """Initialize the streamer.

        Args:
            engine: Request engine used for the count probe and every page.
            page_size: Records per page, constant within a session.
            serial_threshold: Totals above this value use the serial strategy.

        Raises:
            ValueError: Raised when page size or threshold is not positive.
        """

        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if serial_threshold < 1:
            raise ValueError("serial_threshold must be >= 1")

        self._engine = engine
        self._page_size = page_size
        self._serial_threshold = serial_threshold
        self.streaming_last_session: StreamSession | None = None

    def streaming_stream_objects(
        self,
        parameters: QueryParameters,
        serial: bool = False,
        record_type: Callable[[dict[str, str]], Any] = dict,
        endpoint_kind: EndpointKind = EndpointKind.TABLE_DATA,
        validator: ResponseValidator | None = None,
        count_probe: CountProbe | None = None,
        fetch_page: PageFetcher | None = None,
    ) -> Iterator[Any]:
        """Lazily yield every record matching a query.

        Nothing is requested until the first record is pulled. Each call starts a
        new session; closing the returned iterator cancels outstanding fetches.

        Args:
            parameters: Query parameters; never mutated.
            serial: Force page-by-page fetching.
            record_type: Callable building one record from its field mapping.
            endpoint_kind: Endpoint used for the probe and page requests.
            validator: Optional response validator for every request.
            count_probe: Optional override returning the total record count.
            fetch_page: Optional override fetching one page of records.

        Returns:
            Iterator[Any]: Records of all pages.

        Raises:
            PrtgClientError: Raised at the point of consumption when a request fails.
        """

        def _default_fetch_page(page_parameters: QueryParameters, cancel_event: threading.Event) -> list[Any]:
            descriptor = RequestDescriptor(endpoint_kind=endpoint_kind, parameters=page_parameters, validator=validator)
            return self._engine.engine_request_objects(descriptor, record_type, cancel_event).items

        def _default_count_probe(probe_parameters: QueryParameters) -> int:
            descriptor = RequestDescriptor(
                endpoint_kind=endpoint_kind,
                parameters=probe_parameters.with_count(0),
                validator=validator,
            )
            return self._engine.engine_request_objects(descriptor, record_type).total_count

        return self._streaming_generate(
            parameters=parameters,
            serial=serial,
            count_probe=count_probe or _default_count_probe,
            fetch_page=fetch_page or _default_fetch_page,
        )

    def _streaming_generate(
        self,
        parameters: QueryParameters,
        serial: bool,
        count_probe: CountProbe,
        fetch_page: PageFetcher,
    ) -> Iterator[Any]:
        event_hub = self._engine.engine_event_hub
        event_hub.events_publish_log("Preparing to stream objects", stage="stream", status="started")
        event_hub.events_publish_log("Requesting total number of objects", stage="count", status="started")

        total_count = int(count_probe(parameters))
        strategy = streaming_select_strategy(
            total_count=total_count,
            serial_requested=serial,
            serial_threshold=self._serial_threshold,
        )
        if total_count > self._serial_threshold:
            event_hub.events_publish_log(
                f"Switching to serial stream mode as over {self._serial_threshold} objects were detected",
                stage="stream",
                status="mode_switch",
                details={"total_count": total_count, "threshold": self._serial_threshold},
            )

        session = StreamSession(
            total_count=total_count,
            page_size=self._page_size,
            strategy=strategy,
            content_kind=parameters.content.value if parameters.content is not None else None,
        )
        self.streaming_last_session = session
        cursors = streaming_plan_page_cursors(total_count=total_count, page_size=self._page_size)

        if strategy is StreamStrategy.SERIAL:
            yield from self._streaming_serial(parameters, session, cursors, fetch_page)
        else:
            yield from self._streaming_parallel(parameters, session, cursors, fetch_page)

    def _streaming_parallel(
        self,
        parameters: QueryParameters,
        session: StreamSession,
        cursors: list[PageCursor],
        fetch_page: PageFetcher,
    ) -> Iterator[Any]:
        cancel_event = threading.Event()
        futures = [
            self._engine.engine_submit(fetch_page, parameters.with_cursor(cursor), cancel_event)
            for cursor in cursors
        ]
        self._engine.engine_event_hub.events_publish_log(
            f"Requesting {session.total_count} objects from PRTG over {len(futures)} tasks",
            stage="stream",
            status="dispatched",
            details={"total_count": session.total_count, "tasks": len(futures), "strategy": session.strategy.value},
        )
        merger: FanInMerger[Any] = FanInMerger(futures, cancel_event=cancel_event)
        try:
            yield from merger
        finally:
            merger.merger_close()

    def _streaming_serial(
        self,
        parameters: QueryParameters,
        session: StreamSession,
        cursors: list[PageCursor],
        fetch_page: PageFetcher,
    ) -> Iterator[Any]:
        cancel_event = threading.Event()
        self._engine.engine_event_hub.events_publish_log(
            f"Serially requesting {session.total_count} objects from PRTG over {len(cursors)} pages",
            stage="stream",
            status="dispatched",
            details={"total_count": session.total_count, "pages": len(cursors), "strategy": session.strategy.value},
        )
        for cursor in cursors:
            page_records = fetch_page(parameters.with_cursor(cursor), cancel_event)
            # some content kinds, such as logs, over-report their total
            if not page_records:
                logger.info(
                    "PRTG returned an empty page at offset %s of reported total %s; ending stream",
                    cursor.offset,
                    session.total_count,
                )
                return
            yield from page_records
