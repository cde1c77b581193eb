"""Default PRTG payload deserializers and response validators."""

from __future__ import annotations

import json
import re
from html.parser import HTMLParser
from typing import Any, Callable, Final
import xml.etree.ElementTree as element_tree

from prtg_client.domain import SensorTotals, TypedResponse

from .errors import PrtgAuthenticationError, PrtgDeserializationError, PrtgValidationError
from .interfaces import DeserializerPort

_PASS_HASH_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9]+$")


class XmlTableDeserializer(DeserializerPort):
    """Deserializer for table-data and historic-data XML payloads.

    Each `<item>` element becomes one record built by `record_type` from a
    mapping of child element name to text. Channel values in historic data are
    keyed by their `channel` attribute.
    """

    def deserializer_parse(
        self,
        raw: str,
        record_type: Callable[[dict[str, str]], Any] = dict,
    ) -> TypedResponse[Any]:
        """Parse one XML table payload.

        Args:
            raw: Raw XML response body.
            record_type: Callable building one record from its field mapping.

        Returns:
            TypedResponse: Records in document order, reported total and version.

        Raises:
            PrtgDeserializationError: Raised for malformed XML, PRTG error
                documents, a missing `totalcount`, or record construction failures.
        """

        response_root = self._deserializer_parse_xml(raw)
        if response_root.tag == "prtg":
            error_message = (response_root.findtext("error") or "unexpected error document").strip()
            raise PrtgDeserializationError(f"PRTG returned an error document: {error_message}")

        total_count_value = response_root.get("totalcount")
        if total_count_value is None:
            raise PrtgDeserializationError(f"PRTG payload root <{response_root.tag}> is missing totalcount")
        try:
            total_count = int(total_count_value)
        except ValueError as error:
            raise PrtgDeserializationError(f"PRTG totalcount is not numeric: {total_count_value!r}") from error

        server_version = (response_root.findtext("prtg-version") or "").strip() or None

        items: list[Any] = []
        for item_element in response_root.findall("item"):
            field_mapping = self._deserializer_item_fields(item_element)
            try:
                items.append(record_type(field_mapping))
            except (TypeError, ValueError, KeyError) as error:
                raise PrtgDeserializationError(
                    f"Could not build {getattr(record_type, '__name__', 'record')} from PRTG item"
                ) from error

        return TypedResponse(items=items, total_count=total_count, server_version=server_version)

    def _deserializer_parse_xml(self, raw: str) -> element_tree.Element:
        try:
            return element_tree.fromstring(raw)
        except element_tree.ParseError as error:
            raise PrtgDeserializationError("PRTG XML parse failed") from error

    def _deserializer_item_fields(self, item_element: element_tree.Element) -> dict[str, str]:
        field_mapping: dict[str, str] = {}
        for child_element in item_element:
            channel_name = child_element.get("channel")
            if channel_name is not None:
                field_name = f"{channel_name}_raw" if child_element.tag.endswith("_raw") else channel_name
            else:
                field_name = child_element.tag
            field_mapping[field_name] = (child_element.text or "").strip()
        return field_mapping


def deserializer_parse_status(raw: str) -> dict[str, Any]:
    """Parse the JSON status payload.

    Args:
        raw: Raw `getstatus.htm` body.

    Returns:
        dict[str, Any]: Status mapping; `Version` holds the server version.

    Raises:
        PrtgDeserializationError: Raised when payload is not a JSON object.
    """

    try:
        status_payload = json.loads(raw)
    except json.JSONDecodeError as error:
        raise PrtgDeserializationError("PRTG status JSON parse failed") from error
    if not isinstance(status_payload, dict):
        raise PrtgDeserializationError("PRTG status payload must be a JSON object")
    return status_payload


def deserializer_status_version(status_payload: dict[str, Any]) -> str | None:
    """Return the server version from a status mapping, without the `+` suffix."""

    version_value = str(status_payload.get("Version") or "").strip().rstrip("+")
    return version_value or None


def deserializer_parse_pass_hash(raw: str) -> str:
    """Validate and return a pass-hash response.

    Args:
        raw: Raw `getpasshash.htm` body.

    Returns:
        str: Numeric pass-hash.

    Raises:
        PrtgAuthenticationError: Raised when the response is not a numeric hash.
    """

    pass_hash = raw.strip()
    if not _PASS_HASH_PATTERN.match(pass_hash):
        raise PrtgAuthenticationError(f"Could not retrieve PassHash from PRTG Server. PRTG responded '{raw}'")
    return pass_hash


def validate_has_content(raw: str) -> None:
    """Reject empty response bodies.

    Raises:
        PrtgValidationError: Raised when the body is blank.
    """

    if not raw.strip():
        raise PrtgValidationError("PRTG response did not contain any content")


def validate_sensor_history_response(raw: str) -> None:
    """Reject historic-data responses that are not a history document.

    Raises:
        PrtgValidationError: Raised when the `<histdata` marker is absent.
    """

    if "<histdata" not in raw:
        raise PrtgValidationError("PRTG response did not contain expected sensor history markers")


def deserializer_parse_object_property(raw: str) -> str:
    """Return the `<result>` value of a raw object property response.

    Args:
        raw: Raw `getobjectproperty.htm` body.

    Returns:
        str: Property value.

    Raises:
        PrtgDeserializationError: Raised when the payload is not valid XML.
        PrtgValidationError: Raised when PRTG reports the property as missing.
    """

    try:
        response_root = element_tree.fromstring(raw)
    except element_tree.ParseError as error:
        raise PrtgDeserializationError("PRTG object property XML parse failed") from error
    property_value = (response_root.findtext("result") or "").strip()
    if property_value == "(Property not found)":
        raise PrtgValidationError("PRTG reported the requested property does not exist")
    return property_value


_SENSOR_TOTALS_ELEMENTS: Final[dict[str, str]] = {
    "upsens": "up",
    "downsens": "down",
    "warnsens": "warning",
    "partialdownsens": "partial_down",
    "downacksens": "down_acknowledged",
    "pausedsens": "paused",
    "unusualsens": "unusual",
    "undefinedsens": "undefined",
    "totalsens": "total",
}


def deserializer_parse_sensor_totals(raw: str) -> SensorTotals:
    """Parse the `<data>` document returned by the tree node stats endpoint.

    Args:
        raw: Raw `gettreenodestats.xml` body.

    Returns:
        SensorTotals: Sensor counts per status; missing or empty counts are zero.

    Raises:
        PrtgDeserializationError: Raised for malformed XML or non-numeric counts.
    """

    try:
        response_root = element_tree.fromstring(raw)
    except element_tree.ParseError as error:
        raise PrtgDeserializationError("PRTG sensor totals XML parse failed") from error

    totals: dict[str, int] = {}
    for element_name, field_name in _SENSOR_TOTALS_ELEMENTS.items():
        count_value = (response_root.findtext(element_name) or "").strip()
        if not count_value:
            continue
        try:
            totals[field_name] = int(count_value)
        except ValueError as error:
            raise PrtgDeserializationError(f"PRTG {element_name} is not numeric: {count_value!r}") from error
    return SensorTotals(**totals)


class _SettingsFormParser(HTMLParser):
    """Collect current form values from a PRTG settings page."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.form_values: dict[str, str] = {}
        self._select_name: str | None = None
        self._textarea_name: str | None = None
        self._textarea_text: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attributes = {key: value or "" for key, value in attrs}
        field_name = _settings_field_name(attributes.get("name", ""))
        if tag == "input" and field_name:
            input_type = attributes.get("type", "text").lower()
            if input_type in {"radio", "checkbox"} and "checked" not in attributes:
                return
            if input_type in {"submit", "button"}:
                return
            self.form_values[field_name] = attributes.get("value", "")
        elif tag == "select":
            self._select_name = field_name or None
        elif tag == "option" and self._select_name and "selected" in attributes:
            self.form_values[self._select_name] = attributes.get("value", "")
        elif tag == "textarea" and field_name:
            self._textarea_name = field_name
            self._textarea_text = []

    def handle_endtag(self, tag: str) -> None:
        if tag == "select":
            self._select_name = None
        elif tag == "textarea" and self._textarea_name:
            self.form_values[self._textarea_name] = "".join(self._textarea_text).strip()
            self._textarea_name = None

    def handle_data(self, data: str) -> None:
        if self._textarea_name:
            self._textarea_text.append(data)


def _settings_field_name(raw_name: str) -> str:
    return raw_name.strip().rstrip("_")


def deserializer_parse_settings_html(raw: str) -> dict[str, str]:
    """Extract current property values from a PRTG object settings page.

    Checked radio buttons and checkboxes, selected options, text inputs and
    text areas are collected. Trailing `_` is removed from field names so keys
    match the names accepted by the raw property operations.

    Args:
        raw: Raw `controls/objectdata.htm` body.

    Returns:
        dict[str, str]: Property name to current value.

    Raises:
        PrtgValidationError: Raised when the page contains no form fields.
    """

    form_parser = _SettingsFormParser()
    form_parser.feed(raw)
    form_parser.close()
    if not form_parser.form_values:
        raise PrtgValidationError("PRTG settings page did not contain any properties")
    return form_parser.form_values
