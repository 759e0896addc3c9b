from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.parameters import Parameter, with_envelope
from ..protocol.status import STATUS_200
from ..protocol.validator import AdditionalCheck
from .utils import TRUE

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester

_READ_ONLY = (
    "AlignmentMode",
    "Altitude",
    "ApertureArea",
    "ApertureDiameter",
    "AtHome",
    "AtPark",
    "Azimuth",
    "CanPark",
    "CanPulseGuide",
    "CanSetDeclinationRate",
    "CanSetGuideRates",
    "CanSetPark",
    "CanSetPierSide",
    "CanSetTracking",
    "CanSlew",
    "CanSlewAltAz",
    "CanSlewAltAzAsync",
    "CanSync",
    "CanSyncAltAz",
    "CanUnpark",
    "Declination",
)

# (member, default) pairs are read and written back; bare names are read only.
_PROPERTIES = (
    ("DeclinationRate", "0.0"),
    ("DoesRefraction", "false"),
    "EquatorialSystem",
    "FocalLength",
    ("GuideRateDeclination", "0.0"),
    ("GuideRateRightAscension", "0.0"),
    "IsPulseGuiding",
    "RightAscension",
    ("RightAscensionRate", "0.0"),
    ("SideOfPier", "0"),
    "SiderealTime",
    ("SiteElevation", "0.0"),
    ("SiteLatitude", "0.0"),
    ("SiteLongitude", "0.0"),
    "Slewing",
    ("SlewSettleTime", "0"),
)

# Equatorial slews: (member, RightAscension default, Declination default).
_COORDINATE_SLEWS = (
    ("SlewToCoordinatesAsync", "21.0", "70"),
    ("SlewToCoordinates", "12.0", "80"),
)


class _TelescopeRun:
    def __init__(self, tester: "AlpacaProtocolTester") -> None:
        self.tester = tester
        self.settings = tester.settings

    def slewing(self, action: str, timeout: float | None = None):
        return self.tester.settle_while(
            action,
            "Slewing",
            TRUE,
            timeout=self.settings.telescope_maximum_slew_time if timeout is None else timeout,
        )

    async def tracking(self, enabled: bool) -> None:
        value = "True" if enabled else "False"
        await self.tester.call(value, "Tracking", "PUT", with_envelope(Parameter("Tracking", value)), STATUS_200)

    async def coordinates(self, first: tuple[str, str], second: tuple[str, str]) -> tuple[Parameter, Parameter]:
        """Read two members and return them as parameters, falling back to the paired defaults."""
        (first_name, first_default), (second_name, second_default) = first, second
        first_value = await self.tester.read_value(first_name, default=first_default)
        second_value = await self.tester.read_value(second_name, default=second_default)
        return Parameter(first_name, first_value), Parameter(second_name, second_value)

    async def properties(self) -> None:
        tester = self.tester
        for member in _READ_ONLY:
            await tester.get_member(member)

        for entry in _PROPERTIES:
            if isinstance(entry, str):
                await tester.get_member(entry)
            else:
                await tester.get_and_put(*entry)

        for member in ("TargetDeclination", "TargetRightAscension"):
            value = await tester.read_value(member, default="0.0")
            await tester.put_member(member, Parameter(member, value))
            await tester.get_member(member)

        await tester.get_and_put("Tracking", "false")
        await tester.get_and_put("TrackingRate", "0")
        await tester.get_member("TrackingRates")
        await tester.get_and_put("UTCDate", "2022-12-04T17:45:31.1234567Z")

    def step(self, name: str) -> bool:
        if self.tester.session.cancelled:
            return False
        if not self.settings.telescope_test_enabled(name):
            self.tester.omitted(f"PUT {name}")
            return False
        return True

    async def methods(self) -> None:
        tester = self.tester

        if self.step("Park/Unpark"):
            tester.session.set_status("Parking scope...")
            await tester.put_member("Park", wait=self.slewing("Park"))
            await tester.put_member("SetPark")
            await tester.put_member("Unpark")

        if self.step("FindHome"):
            tester.session.set_status("Finding home...")
            await tester.put_member("FindHome", wait=self.slewing("FindHome"))

        await self.tracking(True)

        if self.step("AbortSlew"):
            await tester.put_member("AbortSlew")
        # Read-only queries are not gated by telescope_tests.
        if not tester.session.cancelled:
            await tester.get_member("AxisRates", Parameter("Axis", "0"), additional_check=AdditionalCheck.AXIS_RATES)
            await tester.get_member("CanMoveAxis", Parameter("Axis", "0"))
            await tester.get_member(
                "DestinationSideOfPier",
                *await self.coordinates(("RightAscension", "21.0"), ("Declination", "70")),
            )
        if self.step("MoveAxis"):
            await tester.put_member("MoveAxis", Parameter("Axis", "0"), Parameter("Rate", "0.0"))
        if self.step("PulseGuide"):
            guiding = tester.settle_while(
                "PulseGuide", "IsPulseGuiding", TRUE, timeout=self.settings.standard_response_timeout
            )
            await tester.put_member("PulseGuide", Parameter("Direction", "0"), Parameter("Duration", "0"), wait=guiding)

        for member, right_ascension, declination in _COORDINATE_SLEWS:
            if self.step(member):
                parameters = await self.coordinates(("RightAscension", right_ascension), ("Declination", declination))
                await tester.put_member(member, *parameters, wait=self.slewing(member))

        for member in ("SlewToTargetAsync", "SlewToTarget"):
            if not self.step(member):
                continue
            await self.set_target()
            await tester.put_member(member, wait=self.slewing(member))

        if self.step("SyncToCoordinates"):
            parameters = await self.coordinates(("RightAscension", "45"), ("Declination", "45"))
            await tester.put_member("SyncToCoordinates", *parameters)
        if self.step("SyncToTarget"):
            await tester.put_member("SyncToTarget")

        await self.tracking(False)

        for member, defaults, waits in (
            ("SlewToAltAzAsync", ("60", "60"), True),
            ("SlewToAltAz", ("45", "45"), True),
            ("SyncToAltAz", ("45", "45"), False),
        ):
            if not self.step(member):
                continue
            parameters = await self.coordinates(("Azimuth", defaults[0]), ("Altitude", defaults[1]))
            await tester.put_member(member, *parameters, wait=self.slewing(member) if waits else None)

    async def set_target(self) -> None:
        """Point the target at the current position so target slews stay local; failures are ignored."""
        tester = self.tester
        for target, source, default in (
            ("TargetRightAscension", "RightAscension", "21.0"),
            ("TargetDeclination", "Declination", "70"),
        ):
            value = await tester.read_value(source, default=default)
            try:
                await tester.client.send(
                    "PUT",
                    tester.member_path(target),
                    with_envelope(Parameter(target, value)),
                    cancel_event=tester.session.cancel_event,
                )
            except Exception as exc:
                tester.session.log_debug(f"PUT {target}", repr(exc))


async def check_telescope(tester: "AlpacaProtocolTester") -> None:
    run = _TelescopeRun(tester)
    await tester.test_connect()
    await run.properties()
    await run.methods()
    if not tester.session.cancelled:
        await run.tracking(False)
