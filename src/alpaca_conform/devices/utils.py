from __future__ import annotations

from ..config.settings import DeviceType
from ..protocol.parameters import Parameter

# First interface version of each device kind that has Connect, Disconnect, Connecting and DeviceState.
_CONNECT_AND_DEVICE_STATE_VERSIONS = {
    DeviceType.CAMERA: 4,
    DeviceType.COVER_CALIBRATOR: 2,
    DeviceType.DOME: 3,
    DeviceType.FILTER_WHEEL: 3,
    DeviceType.FOCUSER: 4,
    DeviceType.OBSERVING_CONDITIONS: 2,
    DeviceType.ROTATOR: 4,
    DeviceType.SAFETY_MONITOR: 3,
    DeviceType.SWITCH: 3,
    DeviceType.TELESCOPE: 4,
}

ASYNC_SWITCH_VERSION = 3

# Enumeration values used by wait predicates.
CAMERA_STATE_EXPOSING = "2"
CALIBRATOR_NOT_READY = "2"
COVER_MOVING = "2"
SHUTTER_OPENING = "2"
SHUTTER_CLOSING = "3"
FILTER_WHEEL_MOVING = "-1"
TRUE = "True"


def has_connect_and_device_state(device_type: DeviceType, interface_version: int) -> bool:
    return interface_version >= _CONNECT_AND_DEVICE_STATE_VERSIONS[device_type]


def has_async_switch(interface_version: int) -> bool:
    return interface_version >= ASYNC_SWITCH_VERSION


def param(name: str, value: object) -> Parameter:
    """Build a wire parameter, formatting booleans the way Alpaca clients send them."""
    if isinstance(value, bool):
        return Parameter(name, "True" if value else "False")
    return Parameter(name, str(value))
