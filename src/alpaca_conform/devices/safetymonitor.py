from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester


async def check_safetymonitor(tester: "AlpacaProtocolTester") -> None:
    await tester.test_connect()
    await tester.get_member("IsSafe")
