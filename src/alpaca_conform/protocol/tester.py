from __future__ import annotations

from typing import Awaitable, Callable, Optional, Sequence

import httpx
import structlog

from ..config.settings import ConformSettings, DeviceType
from ..devices import (
    camera,
    covercalibrator,
    dome,
    filterwheel,
    focuser,
    observingconditions,
    rotator,
    safetymonitor,
    switch,
    telescope,
)
from ..devices.utils import TRUE, has_connect_and_device_state
from ..session import ConformSession
from .executor import CANCELLED, TransactionExecutor, TransactionOutcome
from .generator import ProtocolCase, member_cases
from .parameters import PARAMS_OK, Parameter, WireField, with_envelope
from .status import ANY_STATUS, STATUS_200, STATUS_400, STATUS_4XX, ExpectedStatus
from .transport import CONFORM_VERSION, AlpacaHttpClient, RequestCancelled, RequestTimedOut
from .validator import AdditionalCheck
from .waits import Predicate, WaitTimeout, wait_for, wait_while

logger = structlog.get_logger(__name__)

OMITTED_MESSAGE = "Test omitted due to Conform configuration setting"

Settle = Callable[[], Awaitable[bool]]

DEVICE_CHECKS = {
    DeviceType.CAMERA: camera.check_camera,
    DeviceType.COVER_CALIBRATOR: covercalibrator.check_covercalibrator,
    DeviceType.DOME: dome.check_dome,
    DeviceType.FILTER_WHEEL: filterwheel.check_filterwheel,
    DeviceType.FOCUSER: focuser.check_focuser,
    DeviceType.OBSERVING_CONDITIONS: observingconditions.check_observingconditions,
    DeviceType.ROTATOR: rotator.check_rotator,
    DeviceType.SAFETY_MONITOR: safetymonitor.check_safetymonitor,
    DeviceType.SWITCH: switch.check_switch,
    DeviceType.TELESCOPE: telescope.check_telescope,
}


def format_value(value: object) -> str:
    """Render a JSON Value the way it is sent back as a PUT parameter."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if value is None:
        return ""
    return str(value)


class AlpacaProtocolTester:
    """Drives the Alpaca protocol checks for one device.

    The run connects, checks the members common to every device, walks the
    member table for the configured device kind and always finishes by
    sending Connected=False before summarising.
    """

    def __init__(
        self,
        settings: ConformSettings,
        session: Optional[ConformSession] = None,
        client: Optional[AlpacaHttpClient] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if settings.device_type is None:
            raise ValueError("A device type must be configured before checking the Alpaca protocol")
        self.settings = settings
        self.session = session or ConformSession(settings)
        self._owns_client = client is None
        self.client = client or AlpacaHttpClient(
            host=settings.host,
            port=settings.port,
            scheme=settings.scheme,
            response_timeout=settings.long_response_timeout,
            connect_timeout=settings.establish_connection_timeout,
            username=settings.username,
            password=settings.password,
            compression=settings.image_array_compression,
            transport=transport,
        )
        self.executor = TransactionExecutor(self.session, self.client)
        self._interface_version: Optional[int] = None

    @property
    def device_type(self) -> DeviceType:
        assert self.settings.device_type is not None
        return self.settings.device_type

    @property
    def strict(self) -> bool:
        return self.settings.strict_checks

    def device_path(self, member: str, *, device_type: Optional[str] = None, device_number: Optional[str] = None, api: str = "api/v1") -> str:
        device_type = self.device_type.value if device_type is None else device_type
        device_number = str(self.settings.device_number) if device_number is None else device_number
        return f"/{api}/{device_type}/{device_number}/{member}"

    def member_path(self, member: str) -> str:
        return self.device_path(member.lower())

    # Transactions

    async def send(
        self,
        test_name: str,
        message_prefix: str,
        path: str,
        http_method: str,
        parameters: Sequence[Parameter],
        expected: ExpectedStatus,
        **options,
    ) -> TransactionOutcome:
        outcome = await self.executor.send(test_name, message_prefix, path, http_method, parameters, expected, **options)
        if outcome is CANCELLED:
            return outcome
        for verdict in outcome.verdicts:
            self.session.record(test_name, verdict)
        return outcome

    async def call(
        self,
        message_prefix: str,
        member: str,
        http_method: str,
        parameters: Sequence[Parameter],
        expected: ExpectedStatus,
        **options,
    ) -> TransactionOutcome:
        return await self.send(
            f"{http_method} {member}",
            message_prefix,
            self.member_path(member),
            http_method,
            parameters,
            expected,
            **options,
        )

    async def run_cases(self, member: str, cases: Sequence[ProtocolCase], wait: Optional[Settle] = None) -> bool:
        for case in cases:
            outcome = await self.call(
                case.message_prefix,
                member,
                case.http_method,
                case.parameters,
                case.expected,
                badly_cased_transaction_id=case.badly_cased_transaction_id,
                accept_invalid_value_error=case.accept_invalid_value_error,
                negative_ids=case.negative_ids,
                additional_check=case.additional_check,
            )
            if outcome is CANCELLED:
                return False
            if wait is not None and case.settle and outcome.accepted:
                await wait()
        return not self.session.cancelled

    async def get_member(
        self,
        member: str,
        *parameters: Parameter,
        test_bad_values: Optional[Sequence[bool]] = None,
        additional_check: AdditionalCheck = AdditionalCheck.NONE,
    ) -> bool:
        cases = member_cases(
            "GET",
            parameters,
            strict=self.strict,
            test_bad_values=test_bad_values,
            additional_check=additional_check,
        )
        return await self.run_cases(member, cases)

    async def put_member(
        self,
        member: str,
        *parameters: Parameter,
        wait: Optional[Settle] = None,
        test_bad_values: Optional[Sequence[bool]] = None,
    ) -> bool:
        cases = member_cases("PUT", parameters, strict=self.strict, test_bad_values=test_bad_values)
        return await self.run_cases(member, cases, wait)

    async def get_and_put(self, member: str, default: str, *, wait: Optional[Settle] = None) -> bool:
        """Check GET, then PUT the value just read back (or `default`) under the member's own name."""
        await self.get_member(member)
        value = await self.read_value(member, default=default)
        return await self.put_member(member, Parameter(member, value), wait=wait)

    # Quiet device reads used for PUT values and wait predicates

    async def read_value(self, member: str, *parameters: Parameter, default: str) -> str:
        if self.session.cancelled:
            return default
        try:
            response = await self.client.send(
                "GET",
                self.member_path(member),
                with_envelope(*parameters),
                cancel_event=self.session.cancel_event,
            )
            root = response.json()
        except (httpx.RequestError, RequestCancelled, RequestTimedOut, ValueError) as exc:
            logger.debug("conform.read.failed", member=member, error=str(exc))
            return default

        if response.status_code != 200 or not isinstance(root, dict):
            return default
        if root.get(WireField.ERROR_NUMBER.value, 0) != 0 or WireField.VALUE.value not in root:
            return default
        return format_value(root[WireField.VALUE.value])

    def while_value(self, member: str, *matches: str, parameters: Sequence[Parameter] = ()) -> Predicate:
        async def predicate() -> bool:
            return await self.read_value(member, *parameters, default="") in matches

        return predicate

    def settle_while(self, action: str, member: str, *matches: str, timeout: float) -> Settle:
        """A wait callback that polls `member` until its value leaves `matches`."""

        async def settle() -> bool:
            return await wait_while(self.session, action, self.while_value(member, *matches), timeout)

        return settle

    async def wait_for(self, seconds: float, purpose: str) -> bool:
        return await wait_for(self.session, seconds, purpose)

    def omitted(self, test_name: str) -> None:
        self.session.log_info(test_name, OMITTED_MESSAGE)

    # Common checks

    async def interface_version(self) -> int:
        if self._interface_version is not None:
            return self._interface_version

        outcome = await self.send(
            "GET InterfaceVersion",
            "",
            self.member_path("InterfaceVersion"),
            "GET",
            PARAMS_OK,
            STATUS_200,
        )
        if outcome is CANCELLED:
            return 0

        version = outcome.value if isinstance(outcome.value, int) and not isinstance(outcome.value, bool) else 0
        self._interface_version = version
        return version

    async def test_common(self) -> None:
        settings = self.settings
        device_type = self.device_type.value
        connected_empty = with_envelope(Parameter("Connected", ""))
        connected_numeric = with_envelope(Parameter("Connected", "123456"))
        connected_string = with_envelope(Parameter("Connected", "asdqwe"))
        connected_true = with_envelope(Parameter("Connected", "True"))

        if settings.test_primary_url_structure:
            for prefix, api in (
                ("Bad Alpaca URL base element (api = apx)", "apx/v1"),
                ("Bad Alpaca URL version element (no v)", "api/1"),
                ("Bad Alpaca URL version element (no number)", "api/v"),
                ("Bad Alpaca URL version element (capital V)", "api/V1"),
                ("Bad Alpaca URL version element (v2)", "api/v2"),
            ):
                outcome = await self.send(
                    "GET Description", prefix, self.device_path("description", api=api), "GET", PARAMS_OK, ANY_STATUS, bad_uri=True
                )
                if outcome is CANCELLED:
                    return

            for http_method, variants in (
                ("POST", (("True", connected_true), ("Value empty", connected_empty), ("Number", connected_numeric))),
                ("DELETE", (("True", connected_true), ("Empty", connected_empty), ("Number", connected_numeric))),
            ):
                for prefix, parameters in variants:
                    if await self.call(prefix, "Connected", http_method, parameters, ANY_STATUS) is CANCELLED:
                        return

        number = str(settings.device_number)
        for prefix, path in (
            (
                f"Bad Alpaca URL device type (capitalised {device_type.upper()})",
                self.device_path("description", device_type=device_type.upper()),
            ),
            ("Bad Alpaca URL device type (baddevicetype)", self.device_path("description", device_type="baddevicetype", device_number="0")),
            ("Bad Alpaca URL device number (-1)", self.device_path("description", device_number="-1")),
            ("Bad Alpaca URL device number (99999)", self.device_path("description", device_number="99999")),
            ("Bad Alpaca URL device number (A)", self.device_path("description", device_number="A")),
            ("Bad Alpaca URL method name (descrip)", self.device_path("descrip", device_number=number)),
        ):
            if await self.send("GET Description", prefix, path, "GET", PARAMS_OK, STATUS_4XX, bad_uri=True) is CANCELLED:
                return

        if not await self.get_member("Connected"):
            return

        for prefix, parameters in (
            ("Bad parameter value - Empty string", connected_empty),
            ("Bad parameter value - Number", connected_numeric),
            ("Bad parameter value - Meaningless string", connected_string),
        ):
            outcome = await self.call(prefix, "Connected", "PUT", parameters, STATUS_400, accept_invalid_value_error=True)
            if outcome is CANCELLED:
                return

        for member in ("Description", "DriverInfo", "DriverVersion", "InterfaceVersion", "Name", "SupportedActions"):
            if not await self.get_member(member):
                return

        if has_connect_and_device_state(self.device_type, await self.interface_version()):
            await self.get_member("DeviceState", additional_check=AdditionalCheck.DEVICE_STATE)

    async def test_connect(self) -> None:
        if not has_connect_and_device_state(self.device_type, await self.interface_version()):
            return
        timeout = self.settings.connect_disconnect_timeout

        await self.put_member("Disconnect")
        await wait_while(self.session, "Disconnecting", self.while_value("Connecting", TRUE), timeout)

        await self.put_member("Connect")
        await wait_while(self.session, "Connecting", self.while_value("Connecting", TRUE), timeout)

        await self.get_member("Connecting")

    # Run

    async def _check_device(self) -> None:
        session = self.session
        quiet = self.settings.message_level != "all"

        try:
            if quiet:
                session.log_line("OK messages are suppressed, they can be enabled through the settings.")
                session.log_line()
                session.log_line("Connecting to device...")

            await self.call("True", "Connected", "PUT", with_envelope(Parameter("Connected", "True")), STATUS_200)
            if quiet:
                session.log_line("Successfully connected to device, testing...")
            session.log_line()

            version = await self.interface_version()
            session.log_line(f"Device exposes interface version {version}")

            await self.test_common()
            await DEVICE_CHECKS[self.device_type](self)
        except WaitTimeout as exc:
            logger.warning("conform.phase.abandoned", device_type=self.device_type.value, error=str(exc))
            session.log_debug("Run", str(exc))
        finally:
            if quiet:
                session.log_line()
            await self.call(
                "False",
                "Connected",
                "PUT",
                with_envelope(Parameter("Connected", "False")),
                STATUS_200,
                always_send=True,
            )
            if quiet:
                session.log_line("Successfully disconnected from device.")

    async def run(self) -> int:
        """Run every check and write the summary. Returns errors + issues, or -99999 if the run itself failed."""
        session = self.session
        settings = self.settings
        return_code = -99999

        try:
            session.log_line(f"Check Alpaca Protocol - Alpaca Conform {CONFORM_VERSION}")
            session.log_line()
            session.log_line(
                f"Test {self.device_type.display_name} device: {settings.device_name} - "
                f"{settings.host}:{settings.port} through URL: {self.client.base_url}"
            )
            session.log_line()

            try:
                await self._check_device()
            except Exception as exc:
                logger.exception("conform.run.failed", device_type=self.device_type.value)
                session.log_error("", repr(exc))

            session.write_summary()
            return_code = session.return_code
        except Exception as exc:
            logger.exception("conform.run.aborted")
            session.log_error("TestAlpacaProtocol", f"Exception: {exc!r}")
        finally:
            if self._owns_client:
                await self.client.aclose()

        return return_code
