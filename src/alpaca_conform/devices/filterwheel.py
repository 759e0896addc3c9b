from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter
from .utils import FILTER_WHEEL_MOVING

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester


async def check_filterwheel(tester: "AlpacaProtocolTester") -> None:
    await tester.test_connect()

    for member in ("FocusOffsets", "Names", "Position"):
        await tester.get_member(member)

    position = await tester.read_value("Position", default="1")
    if position == FILTER_WHEEL_MOVING:
        position = "1"
    moving = tester.settle_while(
        "Position", "Position", FILTER_WHEEL_MOVING, timeout=tester.settings.standard_response_timeout
    )
    await tester.put_member("Position", Parameter("Position", position), wait=moving)
