from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeviceType(str, Enum):
    CAMERA = "camera"
    COVER_CALIBRATOR = "covercalibrator"
    DOME = "dome"
    FILTER_WHEEL = "filterwheel"
    FOCUSER = "focuser"
    OBSERVING_CONDITIONS = "observingconditions"
    ROTATOR = "rotator"
    SAFETY_MONITOR = "safetymonitor"
    SWITCH = "switch"
    TELESCOPE = "telescope"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    DeviceType.CAMERA: "Camera",
    DeviceType.COVER_CALIBRATOR: "CoverCalibrator",
    DeviceType.DOME: "Dome",
    DeviceType.FILTER_WHEEL: "FilterWheel",
    DeviceType.FOCUSER: "Focuser",
    DeviceType.OBSERVING_CONDITIONS: "ObservingConditions",
    DeviceType.ROTATOR: "Rotator",
    DeviceType.SAFETY_MONITOR: "SafetyMonitor",
    DeviceType.SWITCH: "Switch",
    DeviceType.TELESCOPE: "Telescope",
}

# Telescope members that can be switched off because they move the mount.
TELESCOPE_TEST_NAMES = (
    "CanMoveAxis",
    "Park/Unpark",
    "AbortSlew",
    "AxisRate",
    "FindHome",
    "MoveAxis",
    "PulseGuide",
    "SlewToCoordinates",
    "SlewToCoordinatesAsync",
    "SlewToTarget",
    "SlewToTargetAsync",
    "DestinationSideOfPier",
    "SlewToAltAz",
    "SlewToAltAzAsync",
    "SyncToCoordinates",
    "SyncToTarget",
    "SyncToAltAz",
)


def _default_telescope_tests() -> dict[str, bool]:
    return {name: True for name in TELESCOPE_TEST_NAMES}


class ConformSettings(BaseSettings):
    """Configuration snapshot for one Alpaca protocol conformance run."""

    model_config = SettingsConfigDict(env_prefix="ALPACA_CONFORM_", env_file=".env", extra="allow")

    scheme: Literal["http", "https"] = "http"
    host: str = ""
    port: int = 80
    api_version: int = 1
    device_type: Optional[DeviceType] = None
    device_number: int = 0
    device_name: str = ""

    username: str = ""
    password: str = ""

    establish_connection_timeout: float = 5.0
    standard_response_timeout: float = 10.0
    long_response_timeout: float = 100.0
    connect_disconnect_timeout: float = 5.0

    strict_checks: bool = False
    report_not_implemented_errors: bool = False
    test_primary_url_structure: bool = False
    show_success_responses: bool = True
    message_level: Literal["all", "information", "issues"] = "all"

    image_array_transfer_type: Literal["json", "base64handoff", "imagebytes", "bestavailable"] = "bestavailable"
    image_array_compression: Literal["none", "gzip", "deflate", "gzipordeflate"] = "none"

    camera_exposure_duration: float = 2.0
    telescope_maximum_slew_time: float = 300.0
    telescope_tests: dict[str, bool] = Field(default_factory=_default_telescope_tests)
    dome_open_shutter: bool = False
    dome_shutter_movement_timeout: float = 240.0
    dome_azimuth_movement_timeout: float = 240.0
    dome_altitude_movement_timeout: float = 240.0
    dome_stabilisation_wait_time: float = 10.0
    focuser_timeout: float = 60.0
    rotator_timeout: float = 60.0
    switch_enable_set: bool = False
    switch_read_delay_ms: int = 500
    switch_write_delay_ms: int = 3000

    results_file: Path = Path("conform.report.json")
    log_file: Optional[Path] = None
    debug: bool = False

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def telescope_test_enabled(self, name: str) -> bool:
        return self.telescope_tests.get(name, True)

    def validation_message(self) -> str:
        """Return an empty string when a run can start, otherwise the reasons it cannot."""
        problems: list[str] = []
        if self.device_type is None:
            problems.append("No device type has been selected.")
        if not self.host.strip():
            problems.append("The Alpaca device address is empty.")
        if self.port == 0:
            problems.append("The Alpaca device port is 0.")
        if self.api_version != 1:
            problems.append(f"Only Alpaca API version 1 is supported, version {self.api_version} was requested.")
        return "\n".join(problems)


def load_settings(config_path: Optional[str]) -> ConformSettings:
    """Load settings optionally layering a YAML profile file."""
    settings = ConformSettings()
    if config_path:
        from .yaml_loader import load_yaml_settings

        return load_yaml_settings(settings, config_path)
    return settings
