from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter
from .utils import has_async_switch

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester

SWITCH_ID = Parameter("Id", "0")


async def check_switch(tester: "AlpacaProtocolTester") -> None:
    settings = tester.settings
    read_delay = settings.switch_read_delay_ms / 1000.0
    write_delay = settings.switch_write_delay_ms / 1000.0
    await tester.test_connect()

    await tester.get_member("MaxSwitch")

    await tester.get_member("CanWrite", SWITCH_ID)
    await tester.get_member("GetSwitch", SWITCH_ID)
    await tester.wait_for(read_delay, "switch read delay")

    for member in ("GetSwitchDescription", "GetSwitchName", "GetSwitchValue"):
        await tester.get_member(member, SWITCH_ID)
    await tester.wait_for(read_delay, "switch read delay")

    await tester.get_member("MinSwitchValue", SWITCH_ID)
    await tester.get_member("MaxSwitchValue", SWITCH_ID)

    if has_async_switch(await tester.interface_version()):
        await tester.get_member("CanAsync", SWITCH_ID)

    if settings.switch_enable_set:
        state = await tester.read_value("GetSwitch", SWITCH_ID, default="false")
        await tester.put_member("SetSwitch", SWITCH_ID, Parameter("State", state))
        await tester.wait_for(write_delay, "switch write delay")

        # Any string is a valid switch name.
        name = await tester.read_value("GetSwitchName", SWITCH_ID, default="Unknown name")
        await tester.put_member("SetSwitchName", SWITCH_ID, Parameter("Name", name), test_bad_values=(True, False))

        minimum = await tester.read_value("MinSwitchValue", SWITCH_ID, default="0.0")
        value = await tester.read_value("GetSwitchValue", SWITCH_ID, default=minimum)
        await tester.put_member("SetSwitchValue", SWITCH_ID, Parameter("Value", value))
        await tester.wait_for(write_delay, "switch write delay")
    else:
        for member in ("SetSwitch", "SetSwitchName", "SetSwitchValue"):
            tester.omitted(f"PUT {member}")

    await tester.get_member("SwitchStep", SWITCH_ID)
