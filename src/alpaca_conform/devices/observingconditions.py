from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester

_SENSORS = (
    "CloudCover",
    "DewPoint",
    "Humidity",
    "Pressure",
    "RainRate",
    "SkyBrightness",
    "SkyQuality",
    "SkyTemperature",
    "StarFWHM",
    "Temperature",
    "WindDirection",
    "WindGust",
    "WindSpeed",
)


async def check_observingconditions(tester: "AlpacaProtocolTester") -> None:
    session = tester.session
    await tester.test_connect()

    await tester.get_and_put("AveragePeriod", "0.0")
    for member in _SENSORS:
        await tester.get_member(member)
    await tester.put_member("Refresh")

    await tester.get_member("SensorDescription", Parameter("SensorName", "Pressure"))

    starting_issues = session.issue_count
    await tester.get_member("TimeSinceLastUpdate", Parameter("SensorName", "Pressure"))
    pressure_issues = session.issue_count - starting_issues

    starting_issues = session.issue_count
    await tester.get_member("TimeSinceLastUpdate", Parameter("SensorName", ""))
    all_sensor_issues = session.issue_count - starting_issues

    if pressure_issues:
        session.log_info(
            "TimeSinceLastUpdate",
            'Failed when retrieving the last update time for the Pressure sensor (SensorName = "Pressure").',
        )
    if all_sensor_issues:
        session.log_info(
            "TimeSinceLastUpdate",
            'Failed when retrieving the last update time for all sensors (SensorName = "").',
        )
