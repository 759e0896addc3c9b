from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter
from .utils import TRUE

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester


async def check_rotator(tester: "AlpacaProtocolTester") -> None:
    settings = tester.settings
    await tester.test_connect()

    for member in ("CanReverse", "IsMoving", "MechanicalPosition", "Position", "Reverse"):
        await tester.get_member(member)
    reverse = await tester.read_value("Reverse", default="false")
    await tester.put_member("Reverse", Parameter("Reverse", reverse))
    await tester.get_member("StepSize")
    await tester.get_member("TargetPosition")

    await tester.put_member(
        "Halt", wait=tester.settle_while("Halt", "IsMoving", TRUE, timeout=settings.standard_response_timeout)
    )

    for member, source in (("Move", "Position"), ("MoveAbsolute", "Position"), ("MoveMechanical", "MechanicalPosition")):
        position = await tester.read_value(source, default="1")
        moving = tester.settle_while(member, "IsMoving", TRUE, timeout=settings.rotator_timeout)
        await tester.put_member(member, Parameter("Position", position), wait=moving)

    position = await tester.read_value("Position", default="1")
    syncing = tester.settle_while("Sync", "IsMoving", TRUE, timeout=settings.standard_response_timeout)
    await tester.put_member("Sync", Parameter("Position", position), wait=syncing)
