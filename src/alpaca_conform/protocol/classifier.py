"""Pure decision functions that turn one transaction's facts into outcomes.

Nothing here performs I/O or reads session state; the executor gathers the
inputs and records whatever these functions return.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from .status import ExpectedStatus, describe_expected, describe_status


class Outcome(str, Enum):
    OK = "OK"
    INFO = "INFO"
    ISSUE = "ISSUE"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


class AlpacaError(IntEnum):
    OK = 0x0
    NOT_IMPLEMENTED = 0x400
    INVALID_VALUE = 0x401
    VALUE_NOT_SET = 0x402
    NOT_CONNECTED = 0x407
    INVALID_WHILE_PARKED = 0x408
    INVALID_WHILE_SLAVED = 0x409
    INVALID_OPERATION = 0x40B
    ACTION_NOT_IMPLEMENTED = 0x40C
    OPERATION_CANCELLED = 0x40E
    UNSPECIFIED = 0x4FF


@dataclass(frozen=True)
class Verdict:
    outcome: Outcome
    message: str
    context: Optional[str] = None


def prefixed(prefix: str, message: str) -> str:
    return f"{prefix} - {message}" if prefix else message


def describe_device_error(
    error_number: int,
    error_message: str,
    *,
    client_transaction_id: int,
    server_transaction_id: int,
    report_not_implemented: bool,
) -> Optional[str]:
    """Text describing an ASCOM error carried in the response, or None when there is nothing to report."""
    if error_number == 0 and not error_message:
        return None
    if error_number == AlpacaError.NOT_IMPLEMENTED and not report_not_implemented:
        return None

    transactions = f"for client transaction: {client_transaction_id}, server transaction: {server_transaction_id}"
    try:
        name = AlpacaError(error_number).name
    except ValueError:
        return f"Device returned error number 0x{error_number:X} {transactions}. Error message: {error_message}"
    return f"Device returned a {name} error (0x{error_number:X}) {transactions}. Error message: {error_message}"


def classify_status(
    expected: ExpectedStatus,
    actual: int,
    *,
    message_prefix: str = "",
    error_number: int = 0,
    error_message: str = "",
    device_error: Optional[str] = None,
    accept_invalid_value_error: bool = False,
    strict: bool = False,
    response_text: Optional[str] = None,
) -> Verdict:
    status = describe_status(actual)

    if not expected:
        return Verdict(Outcome.INFO, prefixed(message_prefix, f"Received HTTP status {status}"), response_text)

    if actual in expected:
        if actual == 200 and device_error:
            return Verdict(
                Outcome.INFO,
                prefixed(message_prefix, f"Received HTTP status {status} as expected but the device reported an ASCOM error:"),
                device_error,
            )
        return Verdict(Outcome.OK, prefixed(message_prefix, f"Received HTTP status {status} as expected."), response_text)

    if actual == 200 and accept_invalid_value_error and error_number == AlpacaError.INVALID_VALUE:
        return Verdict(
            Outcome.OK,
            prefixed(message_prefix, f"Received HTTP status {status} and an invalid value error: {error_message}"),
            response_text,
        )

    if actual == 200 and not strict and error_number == AlpacaError.NOT_IMPLEMENTED and tuple(expected) == (400,):
        return Verdict(
            Outcome.OK,
            prefixed(message_prefix, f"Received HTTP status {status} and a not implemented error: {error_message}"),
            response_text,
        )

    return Verdict(
        Outcome.ISSUE,
        prefixed(message_prefix, f"{describe_expected(expected)} but received status: {status}."),
        response_text,
    )


def check_client_transaction_id(
    returned: int,
    expected: int,
    *,
    message_prefix: str = "",
    badly_cased_name: bool = False,
    strict: bool = False,
) -> Verdict:
    """Round-trip check for ClientTransactionID.

    A mis-cased parameter name must be ignored by the device, so 0 is the
    expected echo. Tolerant mode also accepts the sent value with an
    Information note; strict mode treats that echo as an Issue.
    """
    unexpected = Verdict(
        Outcome.ISSUE,
        prefixed(message_prefix, f"An unexpected ClientTransactionID was returned: {returned}, Expected: {0 if badly_cased_name else expected}"),
    )
    if badly_cased_name:
        if returned == 0:
            return Verdict(Outcome.OK, prefixed(message_prefix, "The returned ClientTransactionID was 0 as expected."))
        if not strict and returned == expected:
            return Verdict(
                Outcome.INFO,
                prefixed(
                    message_prefix,
                    "The ClientTransactionID was round-tripped suggesting that the device did not treat it as case sensitive. "
                    f"Sent value: {expected}, Returned value: {returned}",
                ),
            )
        return unexpected

    if returned == expected:
        return Verdict(Outcome.OK, prefixed(message_prefix, f"The expected ClientTransactionID was returned: {returned}"))
    return unexpected


def check_server_transaction_id(returned: int, *, message_prefix: str = "", strict: bool = False) -> Verdict:
    if returned >= 1:
        return Verdict(Outcome.OK, prefixed(message_prefix, f"The ServerTransactionID was 1 or greater: {returned}"))
    if strict:
        return Verdict(
            Outcome.ISSUE,
            prefixed(message_prefix, f"An unexpected ServerTransactionID was returned: {returned}, Expected: 1 or greater"),
        )
    return Verdict(
        Outcome.OK,
        prefixed(
            message_prefix,
            "The device either did not return a ServerTransactionID key or returned a ServerTransactionID key with a value of zero",
        ),
    )
