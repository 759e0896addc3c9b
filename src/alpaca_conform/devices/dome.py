from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter
from .utils import SHUTTER_CLOSING, SHUTTER_OPENING, TRUE

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester

_READ_ONLY = (
    "AtHome",
    "AtPark",
    "Azimuth",
    "CanFindHome",
    "CanPark",
    "CanSetAltitude",
    "CanSetAzimuth",
    "CanSetPark",
    "CanSetShutter",
    "CanSlave",
    "CanSyncAzimuth",
    "ShutterStatus",
    "Slaved",
)


async def check_dome(tester: "AlpacaProtocolTester") -> None:
    settings = tester.settings
    standard = settings.standard_response_timeout
    stabilisation = settings.dome_stabilisation_wait_time

    def slewing(action: str, timeout: float):
        return tester.settle_while(action, "Slewing", TRUE, timeout=timeout)

    def shutter(action: str, status: str):
        return tester.settle_while(action, "ShutterStatus", status, timeout=settings.dome_shutter_movement_timeout)

    await tester.test_connect()

    for member in _READ_ONLY:
        await tester.get_member(member)
    slaved = await tester.read_value("Slaved", default="false")
    await tester.put_member("Slaved", Parameter("Slaved", slaved))
    await tester.get_member("Slewing")

    await tester.put_member("AbortSlew", wait=slewing("AbortSlew", standard))

    await tester.put_member("FindHome", wait=slewing("FindHome", settings.dome_azimuth_movement_timeout))
    await tester.wait_for(stabilisation, "dome azimuth movement delay")

    if settings.dome_open_shutter:
        await tester.put_member("OpenShutter", wait=shutter("OpenShutter", SHUTTER_OPENING))
        await tester.wait_for(stabilisation, "open shutter delay")

        altitude = await tester.read_value("Altitude", default="45")
        await tester.put_member(
            "SlewToAltitude",
            Parameter("Altitude", altitude),
            wait=tester.settle_while(
                "SlewToAltitude", "ShutterStatus", SHUTTER_OPENING, timeout=settings.dome_altitude_movement_timeout
            ),
        )
        await tester.wait_for(stabilisation, "dome altitude movement delay")
    else:
        tester.omitted("PUT OpenShutter")
        tester.omitted("PUT SlewToAltitude")

    azimuth = await tester.read_value("Azimuth", default="45")
    await tester.put_member(
        "SlewToAzimuth",
        Parameter("Azimuth", azimuth),
        wait=slewing("SlewToAzimuth", settings.dome_azimuth_movement_timeout),
    )
    await tester.wait_for(stabilisation, "dome azimuth movement delay")

    azimuth = await tester.read_value("Azimuth", default="45")
    await tester.put_member("SyncToAzimuth", Parameter("Azimuth", azimuth), wait=slewing("SyncToAzimuth", standard))

    if settings.dome_open_shutter:
        await tester.get_member("Altitude")
    else:
        tester.omitted("GET Altitude")

    await tester.put_member("CloseShutter", wait=shutter("CloseShutter", SHUTTER_CLOSING))
    await tester.wait_for(stabilisation, "close shutter delay")

    await tester.put_member("Park", wait=slewing("Park", settings.dome_azimuth_movement_timeout))
    await tester.wait_for(stabilisation, "dome azimuth movement delay")

    await tester.put_member("SetPark")
