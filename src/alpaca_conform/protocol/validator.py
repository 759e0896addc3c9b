"""Structural checks applied to the body of an HTTP 200 Alpaca response."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import structlog

from .classifier import Outcome, Verdict, prefixed
from .image_bytes import IMAGE_BYTES_MIME_TYPE, decode_error_message, decode_metadata, metadata_version
from .parameters import BASE64_HANDOFF_FIELDS, ENVELOPE_RESPONSE_FIELDS, UINT32_MAX, WireField
from .status import describe_status

logger = structlog.get_logger(__name__)


class AdditionalCheck(Enum):
    NONE = "none"
    AXIS_RATES = "axisrates"
    DEVICE_STATE = "devicestate"
    IMAGE_ARRAY = "imagearray"


class ResponseDecodeError(ValueError):
    """The response could not be read as an Alpaca envelope."""


@dataclass
class ValidationReport:
    findings: list[Verdict] = field(default_factory=list)
    client_transaction_id: int = 0
    server_transaction_id: int = 0
    error_number: int = 0
    error_message: str = ""
    value: Any = None
    has_value: bool = False
    response_text: str = ""
    # False when the body was so malformed that status classification must not run.
    completed: bool = True

    def ok(self, message: str, context: Optional[str] = None) -> None:
        self.findings.append(Verdict(Outcome.OK, message, context))

    def info(self, message: str, context: Optional[str] = None) -> None:
        self.findings.append(Verdict(Outcome.INFO, message, context))

    def issue(self, message: str, context: Optional[str] = None) -> None:
        self.findings.append(Verdict(Outcome.ISSUE, message, context))

    def error(self, message: str, context: Optional[str] = None) -> None:
        self.findings.append(Verdict(Outcome.ERROR, message, context))


def is_image_bytes(content_type: Optional[str]) -> bool:
    return IMAGE_BYTES_MIME_TYPE in (content_type or "").lower()


def validate_response(
    body: bytes,
    *,
    content_type: Optional[str],
    base64_handoff: bool = False,
    http_method: str = "GET",
    message_prefix: str = "",
    additional_check: AdditionalCheck = AdditionalCheck.NONE,
    strict: bool = False,
    negative_ids: bool = False,
) -> ValidationReport:
    if is_image_bytes(content_type):
        return _validate_image_bytes(body, message_prefix=message_prefix)
    return _validate_json(
        body.decode("utf-8", errors="replace"),
        base64_handoff=base64_handoff,
        http_method=http_method,
        message_prefix=message_prefix,
        additional_check=additional_check,
        strict=strict,
        negative_ids=negative_ids,
    )


def _validate_json(
    text: str,
    *,
    base64_handoff: bool,
    http_method: str,
    message_prefix: str,
    additional_check: AdditionalCheck,
    strict: bool,
    negative_ids: bool,
) -> ValidationReport:
    report = ValidationReport(response_text=text)

    try:
        root = json.loads(text)
    except json.JSONDecodeError as exc:
        _report_decode_failure(report, exc, message_prefix=message_prefix, strict=strict, negative_ids=negative_ids)
        return report

    if not isinstance(root, dict):
        report.issue(
            prefixed(
                message_prefix,
                f"Received HTTP status {describe_status(200)} but could not de-serialise the returned JSON string. "
                f"Exception message: the JSON root is a {type(root).__name__}, not an object",
            ),
            text,
        )
        report.completed = False
        return report

    try:
        _read_envelope(root, report)
    except ResponseDecodeError as exc:
        _report_decode_failure(report, exc, message_prefix=message_prefix, strict=strict, negative_ids=negative_ids)
        return report

    try:
        _check_envelope_casing(root, report)
        if http_method == "GET":
            _check_value(root, report, base64_handoff=base64_handoff, additional_check=additional_check, strict=strict)
    except (TypeError, ValueError, AttributeError) as exc:
        report.issue(f"Exception while parsing Alpaca response JSON: {exc}", text)
        logger.debug("alpaca.validate.structure_failed", error=str(exc))

    return report


def _report_decode_failure(
    report: ValidationReport,
    exc: Exception,
    *,
    message_prefix: str,
    strict: bool,
    negative_ids: bool,
) -> None:
    # The envelope could not be read so transaction checks run against zeroed values.
    report.client_transaction_id = 0
    report.server_transaction_id = 0
    report.error_number = 0
    report.error_message = ""
    if not strict and negative_ids:
        report.info(
            prefixed(
                message_prefix,
                "Could not parse the returned JSON. Possibly the device returned the supplied negative ID value, "
                "which is not a valid unsigned integer value.",
            )
        )
    else:
        report.error(prefixed(message_prefix, str(exc)))
    logger.debug("alpaca.validate.decode_failed", error=str(exc), negative_ids=negative_ids)


def _lookup(root: dict[str, Any], wire_field: WireField) -> tuple[bool, Any]:
    if wire_field.value in root:
        return True, root[wire_field.value]
    for key, value in root.items():
        if wire_field.matches(key):
            return True, value
    return False, None


def _read_uint32(root: dict[str, Any], wire_field: WireField) -> int:
    found, value = _lookup(root, wire_field)
    if not found or value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT32_MAX:
        raise ResponseDecodeError(f"The JSON value {value!r} for {wire_field.value} is not an unsigned 32 bit integer.")
    return value


def _read_envelope(root: dict[str, Any], report: ValidationReport) -> None:
    report.client_transaction_id = _read_uint32(root, WireField.CLIENT_TRANSACTION_ID)
    report.server_transaction_id = _read_uint32(root, WireField.SERVER_TRANSACTION_ID)

    found, error_number = _lookup(root, WireField.ERROR_NUMBER)
    if found and error_number is not None:
        if isinstance(error_number, bool) or not isinstance(error_number, int):
            raise ResponseDecodeError(f"The JSON value {error_number!r} for ErrorNumber is not an integer.")
        report.error_number = error_number

    found, error_message = _lookup(root, WireField.ERROR_MESSAGE)
    if found and error_message is not None:
        if not isinstance(error_message, str):
            raise ResponseDecodeError(f"The JSON value {error_message!r} for ErrorMessage is not a string.")
        report.error_message = error_message

    report.has_value = WireField.VALUE.value in root
    report.value = root.get(WireField.VALUE.value)


def _check_envelope_casing(root: dict[str, Any], report: ValidationReport) -> None:
    for key in root:
        for wire_field in ENVELOPE_RESPONSE_FIELDS:
            if not wire_field.matches(key):
                continue
            if key == wire_field.value:
                report.ok(f"{wire_field.value} is correctly cased")
            else:
                report.issue(
                    f"The {wire_field.value} JSON parameter is incorrectly cased, it should be cased like this: {wire_field.value}",
                    report.response_text,
                )


def _require_field(
    report: ValidationReport,
    element: dict[str, Any],
    wire_field: WireField,
    *,
    found_message: str,
    missing_message: str,
) -> bool:
    if wire_field.value in element:
        report.ok(found_message)
        return True
    report.issue(missing_message, report.response_text)
    report.info(f"The JSON {wire_field.value} parameter must exist and be cased like this: {wire_field.value}.")
    return False


def _check_value(
    root: dict[str, Any],
    report: ValidationReport,
    *,
    base64_handoff: bool,
    additional_check: AdditionalCheck,
    strict: bool,
) -> None:
    value_field = WireField.VALUE.value
    if value_field in root:
        report.ok(f"JSON {value_field} parameter found OK")
        _check_additional(root, report, additional_check)
        return

    if base64_handoff:
        for wire_field in BASE64_HANDOFF_FIELDS:
            _require_field(
                report,
                root,
                wire_field,
                found_message=f"Base64HandOff - JSON {wire_field.value} parameter found OK",
                missing_message=(
                    f"Base64HandOff - A JSON parameter of name {wire_field.value} was expected, "
                    "but was not found within the returned JSON. This test is case sensitive."
                ),
            )
        return

    # Tolerant mode accepts a missing Value when the device reported an error.
    if not strict and report.error_number != 0:
        return

    report.issue(
        f"A JSON parameter of name {value_field} was expected, but was not found in the JSON response. This test is case sensitive.",
        report.response_text,
    )
    report.info(f"The JSON {value_field} parameter must exist and be cased like this: {value_field}.")


def _elements(value: Any, container: str) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        raise TypeError(f"The {container} Value is a {type(value).__name__}, not an array")
    for element in value:
        if not isinstance(element, dict):
            raise TypeError(f"A {container} element is a {type(element).__name__}, not an object")
    return value


def _check_additional(root: dict[str, Any], report: ValidationReport, additional_check: AdditionalCheck) -> None:
    if additional_check is AdditionalCheck.NONE:
        return

    if additional_check is AdditionalCheck.AXIS_RATES:
        for number, rate in enumerate(_elements(root[WireField.VALUE.value], "AxisRates"), start=1):
            for wire_field in (WireField.MINIMUM, WireField.MAXIMUM):
                _require_field(
                    report,
                    rate,
                    wire_field,
                    found_message=f"Rate {number} - JSON {wire_field.value} parameter found OK",
                    missing_message=(
                        f"Rate {number} - A JSON parameter of name {wire_field.value} was expected, but was not found "
                        f"within the returned AxisRate object: {json.dumps(rate)}. This test is case sensitive."
                    ),
                )
        return

    if additional_check is AdditionalCheck.DEVICE_STATE:
        for state in _elements(root[WireField.VALUE.value], "DeviceState"):
            name = state.get(WireField.NAME.value, "")
            for wire_field in (WireField.NAME, WireField.VALUE):
                _require_field(
                    report,
                    state,
                    wire_field,
                    found_message=f"{name} - JSON {wire_field.value} parameter found OK",
                    missing_message=(
                        f"A JSON parameter of name {wire_field.value} was expected, but was not found "
                        f"within the returned DeviceState object: {json.dumps(state)}. This test is case sensitive."
                    ),
                )
        return

    if additional_check is AdditionalCheck.IMAGE_ARRAY:
        for wire_field in (WireField.TYPE, WireField.RANK):
            _require_field(
                report,
                root,
                wire_field,
                found_message=f"JSON {wire_field.value} parameter found OK",
                missing_message=(
                    f"A JSON parameter of name {wire_field.value} was expected, but was not found in the JSON response. "
                    "This test is case sensitive."
                ),
            )


def _validate_image_bytes(body: bytes, *, message_prefix: str) -> ValidationReport:
    report = ValidationReport()

    try:
        version = metadata_version(body)
        if version == 1:
            report.ok(prefixed(message_prefix, f"The expected ImageBytes metadata version was returned: {version}"))
        else:
            report.issue(prefixed(message_prefix, f"An unexpected ImageBytes metadata version was returned: {version}, Expected: 1"))

        # Later versions are read with the version 1 layout.
        metadata = decode_metadata(body)
    except ValueError as exc:
        report.issue(
            prefixed(
                message_prefix,
                f"Received HTTP status {describe_status(200)} but could not de-serialise the returned ImageBytes frame. "
                f"Exception message: {exc}",
            )
        )
        report.completed = False
        return report

    report.client_transaction_id = metadata.client_transaction_id
    report.server_transaction_id = metadata.server_transaction_id
    report.error_number = metadata.error_number
    if metadata.error_number != 0:
        report.error_message = decode_error_message(body, metadata)
    report.has_value = metadata.error_number == 0

    report.response_text = (
        f"ClientTransactionID: {report.client_transaction_id}, ServerTransactionID: {report.server_transaction_id}, "
        f"ErrorNumber: {report.error_number}, ErrorMessage: '{report.error_message}'"
    )
    return report
