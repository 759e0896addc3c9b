from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from alpaca_conform.config.settings import ConformSettings
from alpaca_conform.log import ConformLogger
from alpaca_conform.protocol.transport import AlpacaHttpClient
from alpaca_conform.session import ConformSession

MOCK_HOST = "testserver"

COMMON_VALUES: dict[str, Any] = {
    "connected": False,
    "description": "Mock Alpaca device",
    "driverinfo": "Mock driver",
    "driverversion": "1.0",
    "interfaceversion": 1,
    "name": "Mock",
    "supportedactions": [],
}

# Member parameters for PUT requests; names must match exactly.
COMMON_PUT_PARAMETERS: dict[str, dict[str, type]] = {
    "connected": {"Connected": bool},
    "connect": {},
    "disconnect": {},
}


@dataclass
class MockBehaviour:
    """Ways the mock device can deviate from a compliant Alpaca implementation."""

    # Reject empty, blank, negative or non-numeric ClientID / ClientTransactionID with HTTP 400.
    reject_bad_ids: bool = True
    # Echo the ClientTransactionID even when its parameter name is mis-cased.
    case_insensitive_envelope: bool = False
    # Echo ids exactly as received, even negative ones.
    echo_raw_ids: bool = False
    send_server_transaction_id: bool = True
    # Report invalid PUT values as HTTP 200 with an InvalidValue error instead of HTTP 400.
    invalid_value_as_error: bool = False
    lowercase_envelope_fields: bool = False


@dataclass
class MockAlpacaDevice:
    device_type: str = "safetymonitor"
    device_number: int = 0
    values: dict[str, Any] = field(default_factory=dict)
    get_parameters: dict[str, dict[str, type]] = field(default_factory=dict)
    put_parameters: dict[str, dict[str, type]] = field(default_factory=dict)
    behaviour: MockBehaviour = field(default_factory=MockBehaviour)
    requests: list[tuple[str, str, dict[str, str]]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.values = {**COMMON_VALUES, **{key.lower(): value for key, value in self.values.items()}}
        self.put_parameters = {**COMMON_PUT_PARAMETERS, **{key.lower(): value for key, value in self.put_parameters.items()}}
        self.get_parameters = {key.lower(): value for key, value in self.get_parameters.items()}
        self._server_transaction_counter = count(1)


def _parse(raw: str, kind: type) -> Any:
    text = raw.strip()
    if kind is bool:
        if text.lower() not in ("true", "false"):
            raise ValueError(f"{raw!r} is not a boolean")
        return text.lower() == "true"
    if kind is str:
        return raw
    return kind(text)


def _parse_id(raw: Optional[str], *, echo_raw: bool) -> Optional[int]:
    if raw is None:
        return 0
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    if value < 0 and not echo_raw:
        return None
    return value


def _lookup(parameters: dict[str, str], name: str, *, case_sensitive: bool) -> Optional[str]:
    if name in parameters:
        return parameters[name]
    if case_sensitive:
        return None
    for key, value in parameters.items():
        if key.lower() == name.lower():
            return value
    return None


def build_device_app(device: MockAlpacaDevice) -> FastAPI:
    app = FastAPI()
    behaviour = device.behaviour

    def alpaca_response(
        value: Any = None,
        *,
        error_number: int = 0,
        error_message: str = "",
        client_transaction_id: int = 0,
        include_value: bool = True,
    ) -> dict[str, Any]:
        names = ("ClientTransactionID", "ServerTransactionID", "ErrorNumber", "ErrorMessage")
        if behaviour.lowercase_envelope_fields:
            names = tuple(name.lower() for name in names)
        payload: dict[str, Any] = {names[0]: client_transaction_id}
        if behaviour.send_server_transaction_id:
            payload[names[1]] = next(device._server_transaction_counter)
        payload[names[2]] = error_number
        payload[names[3]] = error_message
        if include_value and error_number == 0:
            payload["Value"] = value
        return payload

    @app.api_route("/api/v1/{device_type}/{device_number}/{member}", methods=["GET", "PUT"])
    async def alpaca_member(request: Request, device_type: str, device_number: str, member: str):
        if request.method == "GET":
            raw = request.url.query
        else:
            raw = (await request.body()).decode("utf-8")
        parameters = dict(parse_qsl(raw, keep_blank_values=True))
        device.requests.append((request.method, member, parameters))

        if device_type != device.device_type:
            return PlainTextResponse(f"Unsupported device type: {device_type}", status_code=400)
        if not device_number.isdigit() or int(device_number) != device.device_number:
            return PlainTextResponse(f"Device number {device_number} does not exist", status_code=400)

        known = member in device.values or member in device.put_parameters or member in device.get_parameters
        if not known or member != member.lower():
            return PlainTextResponse(f"Unknown member: {member}", status_code=404)

        case_sensitive = request.method == "PUT" or not behaviour.case_insensitive_envelope
        ids = [
            _parse_id(_lookup(parameters, name, case_sensitive=case_sensitive), echo_raw=behaviour.echo_raw_ids)
            for name in ("ClientID", "ClientTransactionID")
        ]
        if None in ids:
            if behaviour.reject_bad_ids:
                return PlainTextResponse("ClientID or ClientTransactionID is invalid", status_code=400)
            ids = [identifier or 0 for identifier in ids]
        transaction_id = ids[1]

        expected = device.put_parameters if request.method == "PUT" else device.get_parameters
        if request.method == "PUT" and member not in device.put_parameters:
            return PlainTextResponse(f"{member} is read only", status_code=400)

        received: dict[str, Any] = {}
        for name, kind in expected.get(member, {}).items():
            raw_value = _lookup(parameters, name, case_sensitive=request.method == "PUT")
            try:
                if raw_value is None:
                    raise ValueError(f"Missing parameter {name}")
                received[name] = _parse(raw_value, kind)
            except ValueError as exc:
                if behaviour.invalid_value_as_error and raw_value is not None:
                    return JSONResponse(
                        alpaca_response(
                            error_number=0x401,
                            error_message=str(exc),
                            client_transaction_id=transaction_id,
                        )
                    )
                return PlainTextResponse(str(exc), status_code=400)

        if request.method == "PUT":
            if len(received) == 1 and member in device.values and not callable(device.values[member]):
                device.values[member] = next(iter(received.values()))
            return JSONResponse(alpaca_response(client_transaction_id=transaction_id, include_value=False))

        value = device.values.get(member)
        if callable(value):
            value = value(received)
        return JSONResponse(alpaca_response(value, client_transaction_id=transaction_id))

    return app


@pytest.fixture
def conform_settings() -> ConformSettings:
    return ConformSettings(host=MOCK_HOST, port=80, device_type="safetymonitor", device_name="Mock")


@pytest.fixture
def session(conform_settings) -> ConformSession:
    return ConformSession(conform_settings, ConformLogger())


def device_client(device: MockAlpacaDevice, **kwargs) -> AlpacaHttpClient:
    return AlpacaHttpClient(
        host=MOCK_HOST,
        port=80,
        response_timeout=5.0,
        transport=httpx.ASGITransport(app=build_device_app(device)),
        **kwargs,
    )


def mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    return httpx.MockTransport(handler)
