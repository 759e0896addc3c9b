from __future__ import annotations

from typing import TYPE_CHECKING

from .utils import CALIBRATOR_NOT_READY, COVER_MOVING, param

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester


async def check_covercalibrator(tester: "AlpacaProtocolTester") -> None:
    timeout = tester.settings.standard_response_timeout
    await tester.test_connect()

    for member in ("Brightness", "CalibratorState", "CoverState", "MaxBrightness"):
        await tester.get_member(member)

    calibrator_settling = tester.settle_while("CalibratorOff", "CalibratorState", CALIBRATOR_NOT_READY, timeout=timeout)
    await tester.put_member("CalibratorOff", wait=calibrator_settling)

    maximum = await tester.read_value("MaxBrightness", default="")
    brightness = int(maximum) // 2 if maximum.lstrip("-").isdigit() else 1
    calibrator_settling = tester.settle_while("CalibratorOn", "CalibratorState", CALIBRATOR_NOT_READY, timeout=timeout)
    await tester.put_member("CalibratorOn", param("Brightness", brightness), wait=calibrator_settling)

    for member in ("OpenCover", "HaltCover", "CloseCover"):
        cover_moving = tester.settle_while(member, "CoverState", COVER_MOVING, timeout=timeout)
        await tester.put_member(member, wait=cover_moving)
