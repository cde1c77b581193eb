"""Regression tests for the PRTG client facade and bootstrap wiring."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

import httpx

import pytest

from prtg_client import PrtgClient, bootstrap_create_client
from prtg_client.adapters import HttpxTransportAdapter, PrtgAuthenticationError, PrtgTimeoutError, PrtgValidationError
from prtg_client.config import AuthMode, ClientSettings
from prtg_client.domain import ContentKind, QueryParameters, SearchFilter, SensorTotals


class _ScriptedTransport:
    """Transport stub replaying scripted bodies and recording every request."""

    def __init__(self, outcomes: list[str]):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        self.closed = False

    def adapter_send(
        self,
        method: str,
        url: str,
        query_parameters: Sequence[tuple[str, str]],
        timeout_seconds: float | None = None,
    ) -> str:
        _ = timeout_seconds
        self.calls.append((method, url, dict(query_parameters)))
        return self.outcomes.pop(0)

    def adapter_close(self) -> None:
        self.closed = True


def _build_client(outcomes: list[str]) -> tuple[PrtgClient, _ScriptedTransport]:
    transport = _ScriptedTransport(outcomes)
    client = PrtgClient(
        server="prtg.example.test",
        username="prtgadmin",
        password="12345",
        auth_mode=AuthMode.PASSHASH,
        transport=transport,
        sleep_provider=lambda seconds: None,
    )
    return client, transport


def test_client_facade_password_mode_exchanges_pass_hash_once() -> None:
    """Resolve the pass-hash at construction and authenticate later calls with it.

    Returns:
        None: Assertions validate credential handling.

    Raises:
        AssertionError: Raised when the password is sent with table requests.
    """

    transport = _ScriptedTransport(["555000111", "<sensors totalcount=\"42\"/>"])

    with PrtgClient("prtg.example.test", "prtgadmin", "secret", transport=transport) as client:
        total = client.client_get_total_objects(ContentKind.SENSORS, [SearchFilter("status", "Down")])

    assert total == 42
    assert client.client_pass_hash == "555000111"
    assert transport.calls[0][1] == "https://prtg.example.test/api/getpasshash.htm"
    _, table_url, table_query = transport.calls[1]
    assert table_url == "https://prtg.example.test/api/table.xml"
    assert table_query["passhash"] == "555000111"
    assert "password" not in table_query
    assert table_query["filter_status"] == "Down"
    assert transport.closed is True


def test_client_facade_password_mode_rejects_non_numeric_hash() -> None:
    """Fail construction when the server does not return a numeric pass-hash.

    Returns:
        None: Assertions validate authentication failure.

    Raises:
        AssertionError: Raised when invalid hashes are accepted.
    """

    transport = _ScriptedTransport(["<html>Your login has failed</html>"])

    with pytest.raises(PrtgAuthenticationError, match="Could not retrieve PassHash"):
        PrtgClient("prtg.example.test", "prtgadmin", "wrong", transport=transport)

    assert transport.closed is True


def test_client_facade_failed_pass_hash_exchange_closes_pooled_http_client() -> None:
    """Close the pooled HTTP client when construction fails during the exchange.

    Returns:
        None: Assertions validate resource release on failed construction.

    Raises:
        AssertionError: Raised when the pooled client stays open.
    """

    def _login_page(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, text="<html>login</html>")

    http_client = httpx.Client(transport=httpx.MockTransport(_login_page))
    transport = HttpxTransportAdapter(client=http_client)

    with pytest.raises(PrtgAuthenticationError):
        PrtgClient("prtg.example.test", "prtgadmin", "wrong", transport=transport)

    assert http_client.is_closed is True


def test_client_facade_exhausted_pass_hash_retries_close_transport() -> None:
    """Close the transport when transient failures outlast the retry budget.

    Returns:
        None: Assertions validate resource release after retries.

    Raises:
        AssertionError: Raised when the transport stays open.
    """

    class _TimingOutTransport(_ScriptedTransport):
        def adapter_send(
            self,
            method: str,
            url: str,
            query_parameters: Sequence[tuple[str, str]],
            timeout_seconds: float | None = None,
        ) -> str:
            _ = (method, url, query_parameters, timeout_seconds)
            raise PrtgTimeoutError("timed out")

    transport = _TimingOutTransport([])

    with pytest.raises(PrtgTimeoutError):
        PrtgClient(
            "prtg.example.test",
            "prtgadmin",
            "secret",
            retry_count=1,
            transport=transport,
            sleep_provider=lambda seconds: None,
        )

    assert transport.closed is True


def test_client_facade_streams_objects_and_logs() -> None:
    """Stream table objects and stop log streams at the first empty page.

    Returns:
        None: Assertions validate streamed records and log parameters.

    Raises:
        AssertionError: Raised when streamed records drift.
    """

    client, transport = _build_client(
        [
            "<sensors totalcount=\"2\"/>",
            "<sensors totalcount=\"2\"><item><objid>1</objid></item><item><objid>2</objid></item></sensors>",
            "<messages totalcount=\"900\"/>",
            "<messages totalcount=\"900\"><item><objid>7</objid></item></messages>",
            "<messages totalcount=\"900\"/>",
        ]
    )

    sensors = list(client.client_stream_objects(QueryParameters(content=ContentKind.SENSORS)))
    logs = list(client.client_stream_logs(object_id=1001, start_date=datetime(2024, 5, 2, 10, 0, 0), serial=True))
    client.client_close()

    assert sensors == [{"objid": "1"}, {"objid": "2"}]
    assert logs == [{"objid": "7"}]
    assert len(transport.calls) == 5
    _, _, log_page_query = transport.calls[3]
    assert log_page_query["content"] == "messages"
    assert log_page_query["id"] == "1001"
    assert log_page_query["filter_dend"] == "2024-05-02-10-00-00"


def test_client_facade_caches_server_version_from_status() -> None:
    """Probe the status endpoint once and reuse the cached version.

    Returns:
        None: Assertions validate version caching.

    Raises:
        AssertionError: Raised when status is requested repeatedly.
    """

    client, transport = _build_client(["{\"Version\": \"21.1.65.1767+\", \"NewAlarms\": \"0\"}"])

    assert client.client_get_server_version() == "21.1.65.1767"
    assert client.client_get_server_version() == "21.1.65.1767"
    client.client_close()

    assert len(transport.calls) == 1
    assert transport.calls[0][1] == "https://prtg.example.test/api/getstatus.htm"


def test_client_facade_raw_property_round_trip_requests() -> None:
    """Read and write raw properties with trailing underscores normalized.

    Returns:
        None: Assertions validate property request shapes.

    Raises:
        AssertionError: Raised when property requests are malformed.
    """

    client, transport = _build_client(["<prtg><result>core-switch</result></prtg>", ""])

    value = client.client_get_object_property_raw(1001, "name_")
    client.client_set_object_property_raw([1001, 1002], "name", "edge-switch")
    client.client_close()

    assert value == "core-switch"
    get_method, get_url, get_query = transport.calls[0]
    assert (get_method, get_url) == ("GET", "https://prtg.example.test/api/getobjectproperty.htm")
    assert get_query["name"] == "name"
    set_method, set_url, set_query = transport.calls[1]
    assert (set_method, set_url) == ("POST", "https://prtg.example.test/editsettings")
    assert set_query["id"] == "1001,1002"
    assert set_query["name_"] == "edge-switch"


def test_client_facade_executes_actions_and_validates_history() -> None:
    """Route generic actions and reject malformed sensor history bodies.

    Returns:
        None: Assertions validate action routing and history validation.

    Raises:
        AssertionError: Raised when actions or history requests drift.
    """

    client, transport = _build_client(["<HTML>OK</HTML>", "<prtg><error>no data</error></prtg>"])

    body = client.client_execute_action("pause", object_id=2001, action=0, pausemsg="maintenance")
    with pytest.raises(PrtgValidationError, match="sensor history"):
        client.client_get_sensor_history(2001, average=0)
    client.client_close()

    assert body == "<HTML>OK</HTML>"
    _, action_url, action_query = transport.calls[0]
    assert action_url == "https://prtg.example.test/api/pause.htm"
    assert action_query["id"] == "2001"
    assert action_query["pausemsg"] == "maintenance"
    assert transport.calls[1][1] == "https://prtg.example.test/api/historicdata.xml"


def test_client_facade_bootstrap_wires_settings() -> None:
    """Assemble a client from explicit settings and an injected transport.

    Returns:
        None: Assertions validate bootstrap wiring.

    Raises:
        AssertionError: Raised when settings are not applied.
    """

    settings = ClientSettings(
        _env_file=None,
        server="https://prtg.example.test/",
        username="prtgadmin",
        password="98765",
        auth_mode=AuthMode.PASSHASH,
        stream_page_size=250,
    )
    transport = _ScriptedTransport([])

    client = bootstrap_create_client(settings=settings, transport=transport)
    client.client_close()

    assert client.client_server == "https://prtg.example.test"
    assert client.client_pass_hash == "98765"
    assert transport.calls == []
    assert transport.closed is True


def test_client_facade_reads_sensor_totals_from_tree_node_stats() -> None:
    """Read per-status sensor counts synchronously and on the worker pool.

    Returns:
        None: Assertions validate totals parsing and endpoint routing.

    Raises:
        AssertionError: Raised when totals are misread.
    """

    totals_payload = (
        "<data><prtg-version>21.1.65</prtg-version><upsens>120</upsens><downsens>3</downsens>"
        "<warnsens>2</warnsens><partialdownsens></partialdownsens><downacksens>1</downacksens>"
        "<pausedsens>7</pausedsens><unusualsens>0</unusualsens><undefinedsens>4</undefinedsens>"
        "<totalsens>137</totalsens></data>"
    )
    client, transport = _build_client([totals_payload, totals_payload])

    totals = client.client_get_sensor_totals()
    async_totals = client.client_get_sensor_totals_async().result(timeout=5)
    client.client_close()

    assert totals == SensorTotals(
        up=120,
        down=3,
        warning=2,
        partial_down=0,
        down_acknowledged=1,
        paused=7,
        unusual=0,
        undefined=4,
        total=137,
    )
    assert async_totals == totals
    assert transport.calls[0][1] == "https://prtg.example.test/api/gettreenodestats.xml"


def test_client_facade_reads_object_settings_page() -> None:
    """Collect current form values from an object settings page.

    Returns:
        None: Assertions validate settings page parsing and request shape.

    Raises:
        AssertionError: Raised when form values are misread.
    """

    settings_page = (
        "<form><input type=\"text\" name=\"name_\" value=\"Ping &amp; Latency\">"
        "<input type=\"radio\" name=\"active_\" value=\"1\" checked>"
        "<input type=\"radio\" name=\"active_\" value=\"0\">"
        "<input type=\"checkbox\" name=\"inherittriggers_\" value=\"1\">"
        "<select name=\"interval_\"><option value=\"30|30 seconds\">30s</option>"
        "<option value=\"60|60 seconds\" selected=\"selected\">60s</option></select>"
        "<textarea name=\"comments\"> core uplink </textarea>"
        "<input type=\"submit\" name=\"save\" value=\"Save\"></form>"
    )
    client, transport = _build_client([settings_page, "<html></html>"])

    settings = client.client_get_object_settings(2001, "Sensor")
    with pytest.raises(PrtgValidationError, match="did not contain any properties"):
        client.client_get_object_settings(2002, "sensor")
    client.client_close()

    assert settings == {
        "name": "Ping & Latency",
        "active": "1",
        "interval": "60|60 seconds",
        "comments": "core uplink",
    }
    _, settings_url, settings_query = transport.calls[0]
    assert settings_url == "https://prtg.example.test/controls/objectdata.htm"
    assert settings_query["id"] == "2001"
    assert settings_query["objecttype"] == "sensor"
