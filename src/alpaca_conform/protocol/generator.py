"""The ordered permutation matrix sent for every Alpaca member."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .parameters import (
    BAD_ENVELOPE_VALUES,
    BAD_PARAMETER_VALUE,
    PARAMS_CLIENT_ID_LOWER_CASE,
    PARAMS_OK_PLUS_EXTRA,
    PARAMS_TRANSACTION_ID_LOWER_CASE,
    Parameter,
    invert_casing,
    with_envelope,
)
from .status import STATUS_200, STATUS_200_OR_400, STATUS_400, ExpectedStatus
from .validator import AdditionalCheck


@dataclass(frozen=True)
class ProtocolCase:
    message_prefix: str
    http_method: str
    parameters: tuple[Parameter, ...]
    expected: ExpectedStatus
    accept_invalid_value_error: bool = False
    badly_cased_transaction_id: bool = False
    negative_ids: bool = False
    additional_check: AdditionalCheck = AdditionalCheck.NONE
    # Whether a state-changing PUT should wait for the device to settle afterwards.
    settle: bool = True


def _replaced(parameters: Sequence[Parameter], index: int, replacement: Parameter) -> tuple[Parameter, ...]:
    return tuple(replacement if position == index else parameter for position, parameter in enumerate(parameters))


def _good_casing_prefixes(http_method: str, parameters: Sequence[Parameter]) -> tuple[str, str]:
    is_get = http_method == "GET"
    if not parameters:
        if is_get:
            return (
                "Good ClientID and ClientTransactionID casing",
                "Good ClientID and ClientTransactionID casing with additional parameter",
            )
        return "Good ID name casing", "Good ID casing + extra parameter"

    names = " and ".join(parameter.name for parameter in parameters)
    noun = "Parameters" if not is_get and len(parameters) > 1 else "Parameter"
    extra = "Good casing + extra parameter" if not is_get and len(parameters) == 1 else "Good casing with extra parameter"
    return f"{noun} {names} (Good casing)", f"{noun} {names} ({extra})"


def member_cases(
    http_method: str,
    parameters: Sequence[Parameter] = (),
    *,
    strict: bool = False,
    test_bad_values: Optional[Sequence[bool]] = None,
    additional_check: AdditionalCheck = AdditionalCheck.NONE,
) -> list[ProtocolCase]:
    """Build the fixed sequence of request variants for one member.

    `parameters` are the member's own parameters; the ClientID and
    ClientTransactionID envelope is added to every case. `test_bad_values`
    holds one flag per parameter selecting whether a nonsense value is sent
    for it.
    """
    parameters = tuple(parameters)
    if test_bad_values is None:
        test_bad_values = (True,) * len(parameters)
    if len(test_bad_values) != len(parameters):
        raise ValueError("test_bad_values needs one flag per parameter")

    is_get = http_method == "GET"
    good_prefix, extra_prefix = _good_casing_prefixes(http_method, parameters)
    cases = [
        ProtocolCase(
            good_prefix,
            http_method,
            with_envelope(*parameters),
            STATUS_200,
            additional_check=additional_check,
        ),
        ProtocolCase(extra_prefix, http_method, with_envelope(*parameters, base=PARAMS_OK_PLUS_EXTRA), STATUS_200),
    ]

    # A mis-cased parameter is ignored by the device: harmless for a GET, a missing value for a PUT.
    for index, parameter in enumerate(parameters):
        cases.append(
            ProtocolCase(
                f"Parameter {parameter.name} ({'Inverted casing' if is_get else 'Bad casing'})",
                http_method,
                with_envelope(*_replaced(parameters, index, parameter.renamed(invert_casing(parameter.name)))),
                STATUS_200 if is_get else STATUS_400,
            )
        )

    cases.append(
        ProtocolCase(
            "Different ClientID casing" if is_get else "Bad ClientID casing",
            http_method,
            with_envelope(*parameters, base=PARAMS_CLIENT_ID_LOWER_CASE),
            STATUS_200,
        )
    )
    cases.append(
        ProtocolCase(
            "Different ClientTransactionID casing" if is_get else "Bad ClientTransactionID casing",
            http_method,
            with_envelope(*parameters, base=PARAMS_TRANSACTION_ID_LOWER_CASE),
            STATUS_200,
            badly_cased_transaction_id=True,
        )
    )

    for index, (parameter, test_bad_value) in enumerate(zip(parameters, test_bad_values)):
        if not test_bad_value:
            continue
        cases.append(
            ProtocolCase(
                f"Parameter {parameter.name} (Bad value)",
                http_method,
                with_envelope(*_replaced(parameters, index, parameter.revalued(BAD_PARAMETER_VALUE))),
                STATUS_400,
                accept_invalid_value_error=True,
                settle=False,
            )
        )

    allowed = STATUS_400 if strict else STATUS_200_OR_400
    for bad in BAD_ENVELOPE_VALUES:
        cases.append(
            ProtocolCase(
                bad.description,
                http_method,
                with_envelope(*parameters, base=bad.parameters),
                allowed,
                accept_invalid_value_error=True,
                negative_ids=bad.negative,
            )
        )

    return cases
