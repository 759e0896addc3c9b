from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

TEST_CLIENT_ID = 123456
TEST_TRANSACTION_ID = 67890
BAD_PARAMETER_VALUE = "asduio6fghZZ"
EXTRA_PARAMETER_NAME = "ExtraParameter"
EXTRA_PARAMETER_VALUE = "ExtraValue"

UINT32_MAX = 4294967295

_UNSIGNED = re.compile(r"^\s*\+?[0-9]+\s*$")


class WireField(str, Enum):
    """Exact wire spelling of every field name the checker sends or inspects."""

    CLIENT_ID = "ClientID"
    CLIENT_TRANSACTION_ID = "ClientTransactionID"
    SERVER_TRANSACTION_ID = "ServerTransactionID"
    ERROR_NUMBER = "ErrorNumber"
    ERROR_MESSAGE = "ErrorMessage"
    VALUE = "Value"
    NAME = "Name"
    MINIMUM = "Minimum"
    MAXIMUM = "Maximum"
    TYPE = "Type"
    RANK = "Rank"
    DIMENSION0_LENGTH = "Dimension0Length"
    DIMENSION1_LENGTH = "Dimension1Length"
    DIMENSION2_LENGTH = "Dimension2Length"

    def matches(self, name: str) -> bool:
        """True when `name` is this field in any casing."""
        return name.lower() == self.value.lower()


# Response envelope fields whose casing is checked on every JSON response.
ENVELOPE_RESPONSE_FIELDS = (
    WireField.CLIENT_TRANSACTION_ID,
    WireField.SERVER_TRANSACTION_ID,
    WireField.ERROR_NUMBER,
    WireField.ERROR_MESSAGE,
)

BASE64_HANDOFF_FIELDS = (
    WireField.TYPE,
    WireField.RANK,
    WireField.DIMENSION0_LENGTH,
    WireField.DIMENSION1_LENGTH,
    WireField.DIMENSION2_LENGTH,
)


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    value: str

    def renamed(self, name: str) -> Parameter:
        return Parameter(name, self.value)

    def revalued(self, value: str) -> Parameter:
        return Parameter(self.name, value)


def invert_casing(text: str) -> str:
    """Swap upper and lower case character by character."""
    return "".join(char.lower() if char == char.upper() else char.upper() for char in text)


def parse_transaction_id(value: str) -> int:
    """Parse an unsigned 32 bit transaction id, returning 0 when it is not one."""
    if not _UNSIGNED.match(value):
        return 0
    parsed = int(value.strip())
    if parsed > UINT32_MAX:
        return 0
    return parsed


def envelope(
    *,
    client_id: str = str(TEST_CLIENT_ID),
    transaction_id: str = str(TEST_TRANSACTION_ID),
    client_id_name: str = WireField.CLIENT_ID.value,
    transaction_id_name: str = WireField.CLIENT_TRANSACTION_ID.value,
) -> tuple[Parameter, Parameter]:
    return (
        Parameter(client_id_name, client_id),
        Parameter(transaction_id_name, transaction_id),
    )


PARAMS_OK = envelope()
PARAMS_OK_PLUS_EXTRA = PARAMS_OK + (Parameter(EXTRA_PARAMETER_NAME, EXTRA_PARAMETER_VALUE),)
PARAMS_CLIENT_ID_LOWER_CASE = envelope(client_id_name=WireField.CLIENT_ID.value.lower())
PARAMS_TRANSACTION_ID_LOWER_CASE = envelope(transaction_id_name=WireField.CLIENT_TRANSACTION_ID.value.lower())


@dataclass(frozen=True, slots=True)
class BadEnvelopeValue:
    description: str
    parameters: tuple[Parameter, Parameter]
    negative: bool = False


# Applied to every member regardless of its own parameters.
BAD_ENVELOPE_VALUES = (
    BadEnvelopeValue("ClientID is empty", envelope(client_id="")),
    BadEnvelopeValue("ClientID is white space", envelope(client_id="     ")),
    BadEnvelopeValue("ClientID is negative", envelope(client_id="-12345"), negative=True),
    BadEnvelopeValue("ClientID is not numeric", envelope(client_id="NASDAQ")),
    BadEnvelopeValue("ClientTransactionID is empty", envelope(transaction_id="")),
    BadEnvelopeValue("ClientTransactionID is white space", envelope(transaction_id="     ")),
    BadEnvelopeValue("ClientTransactionID is negative", envelope(transaction_id="-67890"), negative=True),
    BadEnvelopeValue("ClientTransactionID is a string", envelope(transaction_id="qweqwe")),
)


def with_envelope(*parameters: Parameter, base: tuple[Parameter, ...] = PARAMS_OK) -> tuple[Parameter, ...]:
    return base + tuple(parameters)
