from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter
from .utils import TRUE

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester


async def check_focuser(tester: "AlpacaProtocolTester") -> None:
    settings = tester.settings
    await tester.test_connect()

    for member in ("Absolute", "IsMoving", "MaxIncrement", "MaxStep", "Position", "StepSize", "TempComp"):
        await tester.get_member(member)
    temp_comp = await tester.read_value("TempComp", default="false")
    await tester.put_member("TempComp", Parameter("TempComp", temp_comp))
    await tester.get_member("TempCompAvailable")
    await tester.get_member("Temperature")

    halting = tester.settle_while("Halt", "IsMoving", TRUE, timeout=settings.standard_response_timeout)
    await tester.put_member("Halt", wait=halting)

    position = await tester.read_value("Position", default="1")
    moving = tester.settle_while("Move", "IsMoving", TRUE, timeout=settings.focuser_timeout)
    await tester.put_member("Move", Parameter("Position", position), wait=moving)
