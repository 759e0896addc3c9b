import logging

import pytest

from alpaca_conform.config.settings import DeviceType
from alpaca_conform.protocol.generator import member_cases
from alpaca_conform.protocol.parameters import Parameter
from alpaca_conform.protocol.tester import OMITTED_MESSAGE, AlpacaProtocolTester
from alpaca_conform.session import INTERRUPTED_VERDICT, PASSED_VERDICT, ConformSession

from conftest import MockAlpacaDevice, MockBehaviour, device_client

SAFETY_MONITOR_VALUES = {"issafe": True}


def _tester(settings, device, session=None):
    session = session or ConformSession(settings)
    return AlpacaProtocolTester(settings, session, device_client(device))


@pytest.mark.asyncio
async def test_compliant_safety_monitor_passes(conform_settings, caplog):
    caplog.set_level(logging.INFO, logger="alpaca_conform.protocol")
    device = MockAlpacaDevice(values=SAFETY_MONITOR_VALUES)
    tester = _tester(conform_settings, device)

    return_code = await tester.run()

    assert return_code == 0
    assert tester.session.errors == [] and tester.session.issues == []
    assert tester.session.information == []
    assert PASSED_VERDICT in caplog.text
    assert "Device exposes interface version 1" in caplog.text
    assert "Check Alpaca Protocol - Alpaca Conform" in caplog.text
    assert device.requests[0][:2] == ("PUT", "connected")
    assert device.requests[-1] == (
        "PUT",
        "connected",
        {"ClientID": "123456", "ClientTransactionID": "67890", "Connected": "False"},
    )
    assert device.values["connected"] is False
    members = {member for _, member, _ in device.requests}
    assert {"issafe", "description", "driverinfo", "supportedactions", "descrip"} <= members


@pytest.mark.asyncio
async def test_interface_version_three_adds_connect_and_device_state(conform_settings):
    device = MockAlpacaDevice(
        values={
            **SAFETY_MONITOR_VALUES,
            "interfaceversion": 3,
            "connecting": False,
            "devicestate": [{"Name": "IsSafe", "Value": True}],
        }
    )
    tester = _tester(conform_settings, device)

    assert await tester.run() == 0
    members = [member for _, member, _ in device.requests]
    assert "devicestate" in members
    connect_at = members.index("connect")
    assert members.index("disconnect") < connect_at
    assert "connecting" in members[connect_at + 1 :]
    assert members.count("interfaceversion") == 13


@pytest.mark.asyncio
async def test_misbehaving_device_collects_issues(conform_settings):
    device = MockAlpacaDevice(
        values=SAFETY_MONITOR_VALUES,
        behaviour=MockBehaviour(lowercase_envelope_fields=True, send_server_transaction_id=False),
    )
    settings = conform_settings.model_copy(update={"strict_checks": True})
    tester = _tester(settings, device)

    return_code = await tester.run()

    assert return_code == len(tester.session.errors) + len(tester.session.issues)
    assert return_code > 0
    assert any("incorrectly cased" in message.message for message in tester.session.issues)
    assert any("unexpected ServerTransactionID" in message.message for message in tester.session.issues)


@pytest.mark.asyncio
async def test_cancelled_run_still_disconnects(conform_settings, caplog):
    caplog.set_level(logging.INFO, logger="alpaca_conform.protocol")
    device = MockAlpacaDevice(values=SAFETY_MONITOR_VALUES)
    session = ConformSession(conform_settings)
    session.cancel()

    await _tester(conform_settings, device, session).run()

    assert [(method, member) for method, member, _ in device.requests] == [("PUT", "connected")]
    assert INTERRUPTED_VERDICT in caplog.text


@pytest.mark.asyncio
async def test_wait_timeout_abandons_device_phase(conform_settings):
    settings = conform_settings.model_copy(
        update={"device_type": DeviceType.FILTER_WHEEL, "standard_response_timeout": 0.1}
    )
    device = MockAlpacaDevice(
        device_type="filterwheel",
        values={"focusoffsets": [0, 0], "names": ["L", "R"], "position": lambda _: -1},
        put_parameters={"position": {"Position": int}},
    )
    tester = _tester(settings, device)

    await tester.run()

    assert [message.member for message in tester.session.issues] == ["WaitUntil"]
    puts = [member for method, member, _ in device.requests if method == "PUT"]
    assert puts.count("position") == 1
    assert device.requests[-1][:2] == ("PUT", "connected")


@pytest.mark.asyncio
async def test_read_value_falls_back_to_default(conform_settings):
    device = MockAlpacaDevice(values={"issafe": False})
    tester = _tester(conform_settings, device)

    assert await tester.read_value("IsSafe", default="x") == "False"
    assert await tester.read_value("Missing", default="fallback") == "fallback"
    await tester.client.aclose()


@pytest.mark.asyncio
async def test_interface_version_is_fetched_once(conform_settings):
    device = MockAlpacaDevice(values={"interfaceversion": 2})
    tester = _tester(conform_settings, device)

    assert await tester.interface_version() == 2
    assert await tester.interface_version() == 2
    assert [member for _, member, _ in device.requests] == ["interfaceversion"]
    await tester.client.aclose()


def test_omitted_tests_are_information(conform_settings):
    tester = AlpacaProtocolTester(conform_settings)
    tester.omitted("PUT SetSwitch")
    assert [(message.member, message.message) for message in tester.session.information] == [
        ("PUT SetSwitch", OMITTED_MESSAGE)
    ]


def test_device_type_is_required(conform_settings):
    with pytest.raises(ValueError):
        AlpacaProtocolTester(conform_settings.model_copy(update={"device_type": None}))


@pytest.mark.asyncio
async def test_unexpected_failure_still_disconnects(conform_settings, monkeypatch):
    device = MockAlpacaDevice(values=SAFETY_MONITOR_VALUES)
    tester = _tester(conform_settings, device)

    async def broken_common() -> None:
        raise RuntimeError("device table exploded")

    monkeypatch.setattr(tester, "test_common", broken_common)

    return_code = await tester.run()

    assert return_code == 1
    assert [message.message for message in tester.session.errors] == ["RuntimeError('device table exploded')"]
    assert device.requests[-1] == (
        "PUT",
        "connected",
        {"ClientID": "123456", "ClientTransactionID": "67890", "Connected": "False"},
    )


@pytest.mark.asyncio
async def test_settle_only_follows_accepted_puts(conform_settings):
    device = MockAlpacaDevice(
        values={"tracking": False},
        put_parameters={"tracking": {"Tracking": bool}},
    )
    tester = _tester(conform_settings, device)
    settled = []

    async def settle() -> bool:
        settled.append(device.requests[-1][2].get("Tracking"))
        return True

    cases = member_cases("PUT", [Parameter("Tracking", "True")])
    assert await tester.run_cases("Tracking", cases, settle)

    # Good casing, extra parameter and the two mis-cased ids are accepted; the rest get HTTP 400.
    assert settled == ["True"] * 4
    await tester.client.aclose()
