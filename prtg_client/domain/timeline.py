"""Structured stage events attached to verbose request and stream notifications."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any


def domain_build_stage_event(
    stage: str,
    status: str,
    details: dict[str, Any] | None = None,
) -> dict[str, object]:
    """Build one structured stage event payload.

    Page fetches run on pool threads, so the emitting thread name is recorded
    alongside the UTC timestamp.

    Args:
        stage: Processing stage, for example `request`, `count` or `stream`.
        status: Stage status marker, for example `started` or `mode_switch`.
        details: Optional structured details such as totals or attempt numbers.

    Returns:
        dict[str, object]: Stage event with `stage`, `status`, `thread`, `at_utc`
            and, when given, `details`.

    Raises:
        ValueError: Raised when stage or status is blank.
    """

    normalized_stage = stage.strip()
    normalized_status = status.strip()
    if not normalized_stage or not normalized_status:
        raise ValueError("stage and status must not be blank")

    stage_event: dict[str, object] = {
        "stage": normalized_stage,
        "status": normalized_status,
        "thread": threading.current_thread().name,
        "at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        stage_event["details"] = dict(details)
    return stage_event
