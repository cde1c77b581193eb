"""Regression tests for request engine retry, validation and cancellation behavior."""

from __future__ import annotations

import threading
from typing import Sequence

import pytest

from prtg_client.adapters import (
    PrtgAuthenticationError,
    PrtgConnectionError,
    PrtgHttpStatusError,
    PrtgRequestCancelledError,
    PrtgTimeoutError,
    PrtgValidationError,
)
from prtg_client.domain import ConnectionDetails, ContentKind, EndpointKind, QueryParameters, RequestDescriptor
from prtg_client.request import LogVerboseEvent, RequestEngine, RetryRequestEvent


class _ScriptedTransport:
    """Transport stub replaying scripted bodies and failures in order."""

    def __init__(self, outcomes: list[object]):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str, list[tuple[str, str]]]] = []

    def adapter_send(
        self,
        method: str,
        url: str,
        query_parameters: Sequence[tuple[str, str]],
        timeout_seconds: float | None = None,
    ) -> str:
        _ = timeout_seconds
        self.calls.append((method, url, list(query_parameters)))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return str(outcome)

    def adapter_close(self) -> None:
        return None


def _build_engine(transport: _ScriptedTransport, sleep_calls: list[float], **kwargs: object) -> RequestEngine:
    return RequestEngine(
        transport=transport,
        connection=ConnectionDetails(server="https://prtg.example.test", username="prtgadmin", pass_hash="12345"),
        sleep_provider=sleep_calls.append,
        **kwargs,
    )


_TABLE_DESCRIPTOR = RequestDescriptor(
    endpoint_kind=EndpointKind.TABLE_DATA,
    parameters=QueryParameters(content=ContentKind.SENSORS, count=500),
)


def test_request_engine_retries_transient_failures_with_linear_backoff() -> None:
    """Retry timeouts with linear delays and re-raise after the budget is spent.

    Returns:
        None: Assertions validate attempt count, delays and retry events.

    Raises:
        AssertionError: Raised when retry behavior drifts.
    """

    transport = _ScriptedTransport([PrtgTimeoutError("timed out")] * 4)
    sleep_calls: list[float] = []
    retry_events: list[RetryRequestEvent] = []
    engine = _build_engine(transport, sleep_calls, retry_count=3, retry_delay_seconds=2.0)
    engine.engine_event_hub.events_subscribe_retry(retry_events.append)

    with pytest.raises(PrtgTimeoutError) as error_info:
        engine.engine_execute(_TABLE_DESCRIPTOR)
    engine.engine_close()

    assert len(transport.calls) == 4
    assert sleep_calls == [2.0, 4.0, 6.0]
    assert [event.attempt for event in retry_events] == [1, 2, 3]
    assert error_info.value.descriptor is _TABLE_DESCRIPTOR


def test_request_engine_recovers_after_transient_server_error() -> None:
    """Return the body of the first successful attempt after a 5xx failure.

    Returns:
        None: Assertions validate recovery behavior.

    Raises:
        AssertionError: Raised when 5xx responses are not retried.
    """

    transport = _ScriptedTransport([PrtgHttpStatusError("busy", status_code=503), PrtgConnectionError("reset"), "ok"])
    sleep_calls: list[float] = []
    engine = _build_engine(transport, sleep_calls, retry_count=2, retry_delay_seconds=0.5)

    assert engine.engine_execute(_TABLE_DESCRIPTOR) == "ok"
    engine.engine_close()

    assert sleep_calls == [0.5, 1.0]


@pytest.mark.parametrize(
    "failure",
    [
        PrtgHttpStatusError("bad request", status_code=400),
        PrtgHttpStatusError("missing", status_code=404),
        PrtgAuthenticationError("rejected"),
    ],
)
def test_request_engine_does_not_retry_permanent_failures(failure: Exception) -> None:
    """Surface non-transient failures after exactly one attempt.

    Args:
        failure: Permanent failure raised by the transport.

    Returns:
        None: Assertions validate that no retry was attempted.

    Raises:
        AssertionError: Raised when permanent failures are retried.
    """

    transport = _ScriptedTransport([failure, "unused"])
    sleep_calls: list[float] = []
    engine = _build_engine(transport, sleep_calls, retry_count=3)

    with pytest.raises(type(failure)):
        engine.engine_execute(_TABLE_DESCRIPTOR)
    engine.engine_close()

    assert len(transport.calls) == 1
    assert sleep_calls == []


def test_request_engine_sends_auth_then_parameters_to_endpoint_url() -> None:
    """Prefix query items with credentials and target the endpoint path.

    Returns:
        None: Assertions validate request composition.

    Raises:
        AssertionError: Raised when request composition drifts.
    """

    transport = _ScriptedTransport(["<sensors totalcount=\"0\"/>"])
    engine = _build_engine(transport, [])

    engine.engine_execute(_TABLE_DESCRIPTOR)
    engine.engine_close()

    method, url, query_items = transport.calls[0]
    assert method == "GET"
    assert url == "https://prtg.example.test/api/table.xml"
    assert query_items[:3] == [("username", "prtgadmin"), ("passhash", "12345"), ("content", "sensors")]
    assert ("count", "500") in query_items


def test_request_engine_applies_validator_and_wraps_value_errors() -> None:
    """Return transformed bodies and map validator value errors to validation errors.

    Returns:
        None: Assertions validate validator semantics.

    Raises:
        AssertionError: Raised when validator results are ignored.
    """

    def _strip_banner(raw: str) -> str:
        return raw.removeprefix("banner:")

    def _reject(raw: str) -> None:
        raise ValueError(f"unexpected body {raw}")

    transport = _ScriptedTransport(["banner:payload", "bad"])
    engine = _build_engine(transport, [])

    transformed = engine.engine_execute(RequestDescriptor(EndpointKind.STATUS, validator=_strip_banner))
    rejecting_descriptor = RequestDescriptor(EndpointKind.STATUS, validator=_reject)
    with pytest.raises(PrtgValidationError, match="unexpected body bad") as error_info:
        engine.engine_execute(rejecting_descriptor)
    engine.engine_close()

    assert transformed == "payload"
    assert error_info.value.descriptor is rejecting_descriptor


def test_request_engine_rejects_unknown_endpoint_kind() -> None:
    """Reject descriptors whose endpoint kind is not recognized.

    Returns:
        None: Assertions validate endpoint kind guard.

    Raises:
        AssertionError: Raised when unknown kinds are sent.
    """

    transport = _ScriptedTransport([])
    engine = _build_engine(transport, [])

    with pytest.raises(ValueError, match="unrecognized endpoint kind"):
        engine.engine_execute(RequestDescriptor(endpoint_kind="bogus"))  # type: ignore[arg-type]
    engine.engine_close()

    assert transport.calls == []


def test_request_engine_stops_when_cancelled_before_or_during_backoff() -> None:
    """Abort before the first attempt and at the end of a backoff wait.

    Returns:
        None: Assertions validate cancellation checkpoints.

    Raises:
        AssertionError: Raised when cancelled requests keep retrying.
    """

    cancel_event = threading.Event()
    cancel_event.set()
    idle_transport = _ScriptedTransport([])
    idle_engine = _build_engine(idle_transport, [])
    with pytest.raises(PrtgRequestCancelledError):
        idle_engine.engine_execute(_TABLE_DESCRIPTOR, cancel_event=cancel_event)
    idle_engine.engine_close()
    assert idle_transport.calls == []

    backoff_event = threading.Event()
    failing_transport = _ScriptedTransport([PrtgTimeoutError("timed out"), "unused"])
    failing_engine = RequestEngine(
        transport=failing_transport,
        connection=ConnectionDetails(server="https://prtg.example.test", username="prtgadmin", pass_hash="12345"),
        retry_count=5,
        sleep_provider=lambda seconds: backoff_event.set(),
    )
    with pytest.raises(PrtgRequestCancelledError):
        failing_engine.engine_execute(_TABLE_DESCRIPTOR, cancel_event=backoff_event)
    failing_engine.engine_close()
    assert len(failing_transport.calls) == 1


def test_request_engine_exchanges_password_for_pass_hash() -> None:
    """Store the numeric pass-hash and reject non-numeric responses.

    Returns:
        None: Assertions validate pass-hash exchange.

    Raises:
        AssertionError: Raised when pass-hash handling drifts.
    """

    transport = _ScriptedTransport(["987654321", "<html>Login failed</html>"])
    engine = _build_engine(transport, [])

    assert engine.engine_request_pass_hash("secret") == "987654321"
    assert engine.engine_connection.pass_hash == "987654321"
    assert transport.calls[0][1] == "https://prtg.example.test/api/getpasshash.htm"
    assert transport.calls[0][2] == [("username", "prtgadmin"), ("password", "secret")]

    with pytest.raises(PrtgAuthenticationError, match="Could not retrieve PassHash"):
        engine.engine_request_pass_hash("wrong")
    engine.engine_close()


def test_request_engine_caches_first_server_version_and_publishes_logs() -> None:
    """Cache the first reported server version and publish verbose events.

    Returns:
        None: Assertions validate version caching and log events.

    Raises:
        AssertionError: Raised when the cache is overwritten.
    """

    transport = _ScriptedTransport(
        [
            "<sensors totalcount=\"1\"><prtg-version>21.1.65</prtg-version><item><objid>1</objid></item></sensors>",
            "<sensors totalcount=\"1\"><prtg-version>22.0.0</prtg-version><item><objid>2</objid></item></sensors>",
        ]
    )
    log_events: list[LogVerboseEvent] = []
    engine = _build_engine(transport, [])
    engine.engine_event_hub.events_subscribe_log(log_events.append)

    first_response = engine.engine_request_objects(_TABLE_DESCRIPTOR)
    second_response = engine.engine_request_objects_async(_TABLE_DESCRIPTOR).result(timeout=5)
    engine.engine_close()

    assert first_response.items == [{"objid": "1"}]
    assert second_response.items == [{"objid": "2"}]
    assert engine.engine_server_version == "21.1.65"
    assert [event.stage_event["stage"] for event in log_events] == ["request", "request"]
    assert log_events[0].message.startswith("Requesting api/table.xml content=sensors")


def test_request_engine_isolates_failing_subscribers() -> None:
    """Keep retrying when a retry subscriber raises.

    Returns:
        None: Assertions validate subscriber isolation.

    Raises:
        AssertionError: Raised when subscriber failures change control flow.
    """

    def _broken_subscriber(event: RetryRequestEvent) -> None:
        raise RuntimeError(f"subscriber failed on attempt {event.attempt}")

    transport = _ScriptedTransport([PrtgTimeoutError("timed out"), "ok"])
    engine = _build_engine(transport, [], retry_count=1)
    engine.engine_event_hub.events_subscribe_retry(_broken_subscriber)

    assert engine.engine_execute(_TABLE_DESCRIPTOR) == "ok"
    engine.engine_close()
