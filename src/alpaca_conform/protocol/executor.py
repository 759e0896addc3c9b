from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

import httpx
import structlog

from .classifier import (
    Outcome,
    Verdict,
    check_client_transaction_id,
    check_server_transaction_id,
    classify_status,
    describe_device_error,
    prefixed,
)
from .image_bytes import BASE64_HANDOFF_HEADER
from .parameters import Parameter, WireField, parse_transaction_id
from .status import ExpectedStatus
from .transport import AlpacaHttpClient, RequestCancelled, RequestTimedOut
from .validator import AdditionalCheck, validate_response

if TYPE_CHECKING:
    from ..session import ConformSession

logger = structlog.get_logger(__name__)

_DEBUG_BODY_LENGTH = 250


class Cancelled(Enum):
    """Returned instead of a result when the session was cancelled before sending."""

    CANCELLED = "cancelled"


CANCELLED = Cancelled.CANCELLED


@dataclass
class TransactionResult:
    test_name: str
    message_prefix: str
    status: Optional[int] = None
    response_text: str = ""
    client_transaction_id: int = 0
    server_transaction_id: int = 0
    error_number: int = 0
    error_message: str = ""
    value: Any = None
    verdicts: list[Verdict] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        """The device answered 200 without an Alpaca error, so the request may have changed its state."""
        return self.status == 200 and self.error_number == 0


TransactionOutcome = Union[TransactionResult, Cancelled]


def sent_transaction_id(parameters: Sequence[Parameter]) -> tuple[bool, int]:
    """Whether a ClientTransactionID (in any casing) was sent and the value expected back."""
    for parameter in parameters:
        if WireField.CLIENT_TRANSACTION_ID.matches(parameter.name):
            return True, parse_transaction_id(parameter.value)
    return False, 0


class TransactionExecutor:
    """Sends one Alpaca transaction and turns the response into verdicts.

    The executor never records messages itself; callers pass the returned
    verdicts to the session.
    """

    def __init__(self, session: "ConformSession", client: AlpacaHttpClient) -> None:
        self.session = session
        self.client = client

    async def send(
        self,
        test_name: str,
        message_prefix: str,
        path: str,
        http_method: str,
        parameters: Sequence[Parameter],
        expected: ExpectedStatus,
        *,
        always_send: bool = False,
        badly_cased_transaction_id: bool = False,
        accept_invalid_value_error: bool = False,
        bad_uri: bool = False,
        negative_ids: bool = False,
        additional_check: AdditionalCheck = AdditionalCheck.NONE,
    ) -> TransactionOutcome:
        session = self.session

        if session.cancelled and not always_send:
            session.log_debug(test_name, f"{message_prefix} - Not sent because the run was cancelled")
            return CANCELLED

        result = TransactionResult(test_name=test_name, message_prefix=message_prefix)
        has_transaction_id, expected_transaction_id = sent_transaction_id(parameters)
        if has_transaction_id:
            session.log_debug(test_name, f"{message_prefix} - Expected ClientTransactionID value: {expected_transaction_id}")

        try:
            response = await self.client.send(
                http_method,
                path,
                parameters,
                cancel_event=None if always_send else session.cancel_event,
            )
        except (RequestCancelled, RequestTimedOut) as exc:
            result.verdicts.append(Verdict(Outcome.ERROR, prefixed(message_prefix, "The HTTP request was cancelled")))
            session.log_debug(test_name, str(exc))
            return result
        except httpx.RequestError as exc:
            if bad_uri:
                result.verdicts.append(Verdict(Outcome.OK, prefixed(message_prefix, "Host rejected the bad URI.")))
            else:
                result.verdicts.append(Verdict(Outcome.ERROR, prefixed(message_prefix, str(exc) or type(exc).__name__)))
            session.log_debug(test_name, repr(exc))
            return result

        try:
            self._evaluate(
                result,
                response,
                http_method=http_method,
                expected=expected,
                has_transaction_id=has_transaction_id,
                expected_transaction_id=expected_transaction_id,
                badly_cased_transaction_id=badly_cased_transaction_id,
                accept_invalid_value_error=accept_invalid_value_error,
                negative_ids=negative_ids,
                additional_check=additional_check,
            )
        except Exception as exc:
            logger.exception("alpaca.transaction.failed", test=test_name, prefix=message_prefix)
            result.verdicts.append(Verdict(Outcome.ERROR, prefixed(message_prefix, str(exc) or type(exc).__name__)))
        return result

    def _evaluate(
        self,
        result: TransactionResult,
        response: httpx.Response,
        *,
        http_method: str,
        expected: ExpectedStatus,
        has_transaction_id: bool,
        expected_transaction_id: int,
        badly_cased_transaction_id: bool,
        accept_invalid_value_error: bool,
        negative_ids: bool,
        additional_check: AdditionalCheck,
    ) -> None:
        session = self.session
        settings = session.settings
        strict = settings.strict_checks
        prefix = result.message_prefix
        content_type = response.headers.get("content-type")

        result.status = response.status_code
        body = response.content
        result.response_text = body.decode("utf-8", errors="replace")

        session.log_debug(result.test_name, f"HTTP Status code: {response.status_code}")
        session.log_debug(result.test_name, f"Response length: {len(body)}")
        if settings.debug and "imagebytes" not in (content_type or "").lower():
            session.log_debug(result.test_name, f"Response: #####{result.response_text[:_DEBUG_BODY_LENGTH]}#####")

        if response.status_code == 200 and "<!DOCTYPE" not in result.response_text:
            report = validate_response(
                body,
                content_type=content_type,
                base64_handoff=BASE64_HANDOFF_HEADER in response.headers,
                http_method=http_method,
                message_prefix=prefix,
                additional_check=additional_check,
                strict=strict,
                negative_ids=negative_ids,
            )
            result.verdicts.extend(report.findings)
            if not report.completed:
                return
            result.response_text = report.response_text
            result.client_transaction_id = report.client_transaction_id
            result.server_transaction_id = report.server_transaction_id
            result.error_number = report.error_number
            result.error_message = report.error_message
            result.value = report.value

        if has_transaction_id and response.status_code == 200:
            result.verdicts.append(
                check_client_transaction_id(
                    result.client_transaction_id,
                    expected_transaction_id,
                    message_prefix=prefix,
                    badly_cased_name=badly_cased_transaction_id,
                    strict=strict,
                )
            )

        if response.status_code == 200:
            result.verdicts.append(
                check_server_transaction_id(result.server_transaction_id, message_prefix=prefix, strict=strict)
            )

        device_error = describe_device_error(
            result.error_number,
            result.error_message,
            client_transaction_id=result.client_transaction_id,
            server_transaction_id=result.server_transaction_id,
            report_not_implemented=settings.report_not_implemented_errors,
        )
        result.verdicts.append(
            classify_status(
                expected,
                response.status_code,
                message_prefix=prefix,
                error_number=result.error_number,
                error_message=result.error_message,
                device_error=device_error,
                accept_invalid_value_error=accept_invalid_value_error,
                strict=strict,
                response_text=result.response_text,
            )
        )
