"""Streaming layer for paged PRTG queries."""

from .fan_in import FanInMerger
from .paging import (
	DEFAULT_PAGE_SIZE,
	DEFAULT_SERIAL_THRESHOLD,
	CountProbe,
	PageFetcher,
	PagingStreamer,
	streaming_plan_page_cursors,
	streaming_select_strategy,
)

__all__ = [
	"DEFAULT_PAGE_SIZE",
	"DEFAULT_SERIAL_THRESHOLD",
	"CountProbe",
	"FanInMerger",
	"PageFetcher",
	"PagingStreamer",
	"streaming_plan_page_cursors",
	"streaming_select_strategy",
]
